"""Caption Reflow — fit SRT captions to short-form display limits.

WHY: Vertical short-form video can only show a few characters per line.
Captions exported for widescreen playback need to be reflowed, and long
captions split into several sequential captions, without losing sync.

HOW: Three-stage pipeline — parse (core.srt), decide (an external
reformatting oracle, see oracle/), reallocate (core.reallocator) — then
serialize back to SRT. The parse/reallocate/serialize stages are pure and
independently testable.

RULES:
- The oracle decides WHAT text goes in each caption; this package decides WHEN
- Split captions always tile the original caption's time span exactly
- Oracle failures are never partially applied
"""

from caption_reflow.core.models import CaptionEntry, FormattingDecision
from caption_reflow.core.reallocator import reallocate
from caption_reflow.core.srt import parse, serialize

__version__ = "0.1.0"

__all__ = [
    "CaptionEntry",
    "FormattingDecision",
    "parse",
    "reallocate",
    "serialize",
]
