"""
Console reporting for verification runs.

Progress lines end in a carriage return so each one overwrites the last.
Invalid blobs get a line of their own at the moment they are found.
"""

import sys
from typing import Optional, TextIO


def plural(n: int) -> str:
    return "" if n == 1 else "s"


class Reporter:
    """Receives pipeline events. The base class ignores them."""

    def progress(self, tally) -> None:
        pass

    def invalid_blob(self, ref) -> None:
        pass

    def summary(self, tally) -> None:
        pass


class ConsoleReporter(Reporter):
    """Writes progress and the final summary to a text stream (stdout by default)."""

    def __init__(self, out: Optional[TextIO] = None):
        self._out = out

    @property
    def out(self) -> TextIO:
        # Resolved late so tests capturing sys.stdout see the output
        return self._out if self._out is not None else sys.stdout

    def progress(self, tally) -> None:
        if tally.invalid == 0:
            line = f" verified {tally.valid} blob{plural(tally.valid)}..."
        else:
            line = (
                f" {tally.invalid} invalid blob{plural(tally.invalid)}, "
                f"{tally.valid} valid blob{plural(tally.valid)}..."
            )
        self.out.write(line + "\r")
        self.out.flush()

    def invalid_blob(self, ref) -> None:
        self.out.write(f"found invalid blob: {ref}\n")
        self.out.flush()

    def summary(self, tally) -> None:
        if tally.invalid == 0:
            self.out.write(f"verified all {tally.valid} blobs\n")
        else:
            self.out.write(
                f"CORRUPTION DETECTED: {tally.invalid} of {tally.total} blobs failed validation. "
                "Their refs are listed above.\n"
            )
        self.out.flush()
