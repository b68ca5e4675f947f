"""Exit-code contract for the CLI.

Code  Meaning
----  -------
  0   Success — analyzer ran (results may be empty)
  1   Not found — a lookup analyzer had no match
  2   Error — usage error, unreadable root, invalid config
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    NOT_FOUND = 1
    ERROR = 2
