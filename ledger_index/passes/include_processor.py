"""
IncludeResolver
===============

Resolves the argument of an ``include`` directive and parses the target
through a callback supplied by the parser.

Resolution rules:

1. Surrounding quotes and a reader prefix (``journal:``, ``timedot:`` …)
   are removed and ``~`` is expanded.
2. Relative paths are taken relative to the including file's directory
   (the working directory for content without a path).
3. Glob patterns expand to every matching file, in sorted order, and the
   resulting indices are merged.

Failures never reach the including parse: a missing or unreadable file, a
file already on the include stack, or a nesting deeper than
``max_depth`` is logged and skipped.
"""
from __future__ import annotations

import glob
import logging
import re
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..index_builder import IndexBuilder
from ..models import LedgerIndex

logger = logging.getLogger(__name__)

_READER_PREFIX_RE = re.compile(r"^(?:journal|ledger|hledger|timeclock|timedot|csv|ssv|tsv|rules):(.+)$")

IncludeStack = Tuple[Path, ...]
#: ``(path, depth, stack) -> index or None``
ParseCallback = Callable[[Path, int, IncludeStack], Optional[LedgerIndex]]
#: ``(including_file, included_file)``
EdgeCallback = Callable[[Optional[Path], Path], None]


class IncludeResolver:
    """
    Parameters
    ----------
    parse_included:
        Parses one resolved file at the given depth; returns ``None`` when
        the file could not be read.
    max_depth:
        Deepest nesting followed.  A file at depth ``max_depth`` may not
        include anything further.
    on_include:
        Optional hook receiving every resolved include edge.
    max_templates_per_payee:
        Passed to the builder used when a glob matches several files.
    """

    def __init__(
        self,
        parse_included: ParseCallback,
        max_depth: int = 10,
        on_include: Optional[EdgeCallback] = None,
        max_templates_per_payee: int = 5,
    ) -> None:
        self.parse_included = parse_included
        self.max_depth = max_depth
        self.on_include = on_include
        self.max_templates_per_payee = max_templates_per_payee

    def resolve(
        self,
        argument: str,
        base_dir: Optional[Path],
        depth: int,
        stack: IncludeStack = (),
    ) -> Optional[LedgerIndex]:
        """
        Resolve and parse the files named by *argument*.

        Parameters
        ----------
        argument:
            Raw text after the ``include`` keyword.
        base_dir:
            Directory of the including file, or ``None`` for the working
            directory.
        depth:
            Nesting depth of the including file (0 for a top-level parse).
        stack:
            Resolved paths of the files currently being parsed, outermost
            first.

        Returns
        -------
        LedgerIndex | None
            Index of the included file(s), or *None* when nothing could be
            included.
        """
        if depth >= self.max_depth:
            logger.warning(
                "Include depth limit %d reached; skipping include %r", self.max_depth, argument
            )
            return None

        paths = self.candidate_paths(argument, base_dir)
        if not paths:
            logger.warning("Include %r matched no files", argument)
            return None

        including = stack[-1] if stack else None
        results: List[LedgerIndex] = []
        for path in paths:
            resolved = path.resolve()
            if self.on_include is not None:
                self.on_include(including, resolved)
            if resolved in stack:
                logger.warning("Include cycle detected at %s; skipping", resolved)
                continue
            logger.debug("Including %s (depth %d)", resolved, depth + 1)
            index = self.parse_included(resolved, depth + 1, stack + (resolved,))
            if index is not None:
                results.append(index)

        if not results:
            return None
        if len(results) == 1:
            return results[0]
        builder = IndexBuilder(self.max_templates_per_payee)
        for index in results:
            builder.merge(index)
        return builder.freeze()

    @staticmethod
    def candidate_paths(argument: str, base_dir: Optional[Path]) -> List[Path]:
        target = argument.strip().strip('"').strip("'").strip()
        if not target:
            return []
        prefixed = _READER_PREFIX_RE.match(target)
        if prefixed:
            target = prefixed.group(1)
        path = Path(target).expanduser()
        if not path.is_absolute():
            path = (base_dir or Path.cwd()) / path
        if glob.has_magic(str(path)):
            return sorted(Path(p) for p in glob.glob(str(path), recursive=True) if Path(p).is_file())
        return [path]
