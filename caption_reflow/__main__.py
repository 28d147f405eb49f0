"""Package entry point for ``python -m caption_reflow``.

HOW: Delegates to the CLI's main(). ``--serve`` starts the HTTP API
instead (same as the ``caption-reflow-api`` console script).
"""

import sys

if __name__ == "__main__":
    if "--serve" in sys.argv:
        from caption_reflow.server.app import run_api
        run_api()
    else:
        from caption_reflow.cli import main
        main()
