"""
LineSanitisePass
================

Light clean-up of journal lines before tokenizing:

* a UTF-8 byte-order mark at the start of the first line is removed;
* trailing whitespace (including a stray ``\\r``) is stripped.

Leading whitespace is preserved: indentation decides whether a line is a
posting.
"""
from __future__ import annotations

from typing import List

_BOM = "\ufeff"


class LineSanitisePass:
    """Sanitises journal lines for tokenizing."""

    def run(self, lines: List[str]) -> List[str]:
        """
        Apply sanitisation to all lines.

        Parameters
        ----------
        lines:
            Raw lines of one document, without line terminators.

        Returns
        -------
        List[str]
            Sanitised lines (same length list; no lines are dropped).
        """
        cleaned = [line.rstrip() for line in lines]
        if cleaned and cleaned[0].startswith(_BOM):
            cleaned[0] = cleaned[0][len(_BOM):]
        return cleaned
