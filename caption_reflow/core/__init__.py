"""Core caption model, SRT codec, and duration reallocation.

WHY: The core package contains the deterministic heart of the reformatter
— everything that does not depend on the oracle. These modules are pure
functions over in-memory data with no I/O.

HOW: timecode.py converts timestamps, models.py defines the value types,
srt.py parses and serializes caption files, reallocator.py turns oracle
decisions back into timed entries.

RULES:
- No network, file, or clock access in this package
- Entries are immutable; every transformation returns new entries
"""
