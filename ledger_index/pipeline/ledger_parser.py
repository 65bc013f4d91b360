"""
LedgerParser
============

Public facade of the engine.  One instance owns a configuration, a
number-format service and an include graph; cached results live in a
:class:`~ledger_index.cache.project_cache.ProjectCache` passed in by the
caller.

Pipeline for one document::

    LineSanitisePass -> LineTokenizer -> EntityBuilderPass -> RegexEnhancerPass
                                            |
                                            +-- include -> IncludeResolver -> (same pipeline)

Error policy
------------
* Unreadable top-level file: empty index, logged.
* Unreadable, missing, cyclic or too deeply nested include: skipped, logged.
* File above ``max_file_size``: :class:`~ledger_index.errors.FileSizeExceededError`.
* Anything unexpected inside the passes: logged with its traceback, empty
  index returned.
"""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from ..cache.project_cache import ProjectCache
from ..config import PARSE_MODE_CHUNKED, ParserConfig, select_parse_mode
from ..errors import FileSizeExceededError
from ..index_builder import IndexBuilder
from ..lexer.tokenizer import LineTokenizer
from ..models import LedgerIndex
from ..passes.entity_builder import EntityBuilderPass
from ..passes.include_processor import IncludeResolver, IncludeStack
from ..passes.regex_enhancer import RegexEnhancerPass
from ..passes.sanitise import LineSanitisePass
from ..services.number_format import NumberFormatService
from .file_scanner import FileScanner
from .include_graph import IncludeGraph

logger = logging.getLogger(__name__)

PathArg = Union[str, "os.PathLike[str]"]


def _read_lines(path: Path) -> List[str]:
    return path.read_text(encoding="utf-8", errors="replace").splitlines()


def _chunks(lines: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(lines), size):
        yield lines[start:start + size]


class LedgerParser:
    """
    High-level facade for journal indexing.

    Parameters
    ----------
    config:
        Tunables; defaults to :class:`~ledger_index.config.ParserConfig`.
    """

    def __init__(self, config: Optional[ParserConfig] = None) -> None:
        self.config = config or ParserConfig()
        self.number_formats = NumberFormatService()
        self.include_graph = IncludeGraph()
        self._sanitiser = LineSanitisePass()
        self._scanner = FileScanner(self.config)
        self._includes = IncludeResolver(
            parse_included=self._parse_included,
            max_depth=self.config.max_include_depth,
            on_include=self._record_include,
            max_templates_per_payee=self.config.max_templates_per_payee,
        )

    # ------------------------------------------------------------------
    # Synchronous API
    # ------------------------------------------------------------------

    def parse_file(self, path: PathArg) -> LedgerIndex:
        """
        Parse one journal file and everything it includes.

        Returns an empty index when the file cannot be read.

        Raises
        ------
        FileSizeExceededError
            When the file is larger than ``config.max_file_size``.
        """
        file_path = Path(path)
        try:
            size = file_path.stat().st_size
        except OSError as exc:
            logger.error("Cannot read journal %s: %s", file_path, exc)
            return LedgerIndex()
        self._check_size(file_path, size)

        resolved = file_path.resolve()
        try:
            lines = _read_lines(resolved)
        except OSError as exc:
            logger.error("Cannot read journal %s: %s", resolved, exc)
            return LedgerIndex()
        return self._guarded(lambda: self._build(lines, resolved, 0, (resolved,)), resolved)

    def parse_content(self, content: str, base_path: Optional[PathArg] = None) -> LedgerIndex:
        """
        Parse journal text.

        Parameters
        ----------
        content:
            The journal text.
        base_path:
            Path of the document the text belongs to (a directory is also
            accepted).  Relative includes resolve against its directory;
            without it they resolve against the working directory.
        """
        if not isinstance(content, str):
            raise TypeError(f"content must be str, not {type(content).__name__}")
        source, base_dir = self._source_path(base_path)
        lines = content.splitlines()
        stack: IncludeStack = (source,) if source is not None else ()
        return self._guarded(lambda: self._build(lines, source, 0, stack, base_dir), source)

    def parse_workspace(
        self,
        root: PathArg,
        cache: Optional[ProjectCache] = None,
    ) -> LedgerIndex:
        """
        Parse every journal file under *root* into one aggregate index.

        Cached entries are used while their file (and every file it
        includes) is unchanged; fresh results are stored back into *cache*.
        Files are merged in sorted path order.
        """
        aggregate = IndexBuilder(self.config.max_templates_per_payee)
        for path in self._scanner.scan(root):
            aggregate.merge(self._cached_or_parse(path, cache))
        return aggregate.freeze()

    def with_document(
        self,
        base: LedgerIndex,
        content: str,
        base_path: Optional[PathArg] = None,
    ) -> LedgerIndex:
        """
        Return *base* extended with the facts of an unsaved document.

        *base* (typically a cached workspace index) is copied, never
        modified.
        """
        draft = IndexBuilder.from_index(base, self.config.max_templates_per_payee)
        draft.merge(self.parse_content(content, base_path))
        return draft.freeze()

    # ------------------------------------------------------------------
    # Asynchronous API
    # ------------------------------------------------------------------

    async def parse_file_async(self, path: PathArg) -> LedgerIndex:
        """
        Parse a file without blocking the event loop for long.

        The file is read in a worker thread; files above
        ``config.async_threshold`` are processed in chunks with a yield to
        the event loop between chunks.
        """
        file_path = Path(path)
        try:
            stat = await asyncio.to_thread(file_path.stat)
        except OSError as exc:
            logger.error("Cannot read journal %s: %s", file_path, exc)
            return LedgerIndex()
        self._check_size(file_path, stat.st_size)

        resolved = file_path.resolve()
        try:
            lines = await asyncio.to_thread(_read_lines, resolved)
        except OSError as exc:
            logger.error("Cannot read journal %s: %s", resolved, exc)
            return LedgerIndex()

        if select_parse_mode(self.config, stat.st_size) == PARSE_MODE_CHUNKED:
            return await self._guarded_async(lines, resolved, (resolved,))
        return self._guarded(lambda: self._build(lines, resolved, 0, (resolved,)), resolved)

    async def parse_content_async(
        self,
        content: str,
        base_path: Optional[PathArg] = None,
        chunked: Optional[bool] = None,
    ) -> LedgerIndex:
        """
        Async form of :meth:`parse_content`.

        *chunked* forces the chunked path on or off; by default it is used
        when the encoded text is above ``config.async_threshold``.
        """
        if not isinstance(content, str):
            raise TypeError(f"content must be str, not {type(content).__name__}")
        if chunked is None:
            size = len(content.encode("utf-8"))
            chunked = select_parse_mode(self.config, size) == PARSE_MODE_CHUNKED
        if not chunked:
            return self.parse_content(content, base_path)
        source, base_dir = self._source_path(base_path)
        stack: IncludeStack = (source,) if source is not None else ()
        return await self._guarded_async(content.splitlines(), source, stack, base_dir)

    async def parse_files_async(self, paths: Iterable[PathArg]) -> LedgerIndex:
        """
        Parse several files, ``config.batch_size`` at a time, and merge the
        results in the order given.
        """
        paths = list(paths)
        aggregate = IndexBuilder(self.config.max_templates_per_payee)
        batch_size = self.config.batch_size
        for start in range(0, len(paths), batch_size):
            batch = paths[start:start + batch_size]
            results = await asyncio.gather(*(self.parse_file_async(p) for p in batch))
            for index in results:
                aggregate.merge(index)
        return aggregate.freeze()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _build(
        self,
        lines: Sequence[str],
        source: Optional[Path],
        depth: int,
        stack: IncludeStack,
        base_dir: Optional[Path] = None,
    ) -> LedgerIndex:
        builder, entities = self._start(source, depth, stack, base_dir)
        lines = self._sanitiser.run(list(lines))
        entities.run(LineTokenizer().feed(lines))
        RegexEnhancerPass(builder, self.number_formats).run(lines)
        return builder.freeze()

    async def _build_chunked(
        self,
        lines: Sequence[str],
        source: Optional[Path],
        stack: IncludeStack,
        base_dir: Optional[Path] = None,
    ) -> LedgerIndex:
        builder, entities = self._start(source, 0, stack, base_dir)
        lines = self._sanitiser.run(list(lines))
        size = self.config.chunk_size

        # Stage 1 – tokens and entities, chunk by chunk
        tokenizer = LineTokenizer()
        for number, chunk in enumerate(_chunks(lines, size), 1):
            entities.feed(tokenizer.feed(chunk))
            logger.debug("Processed chunk %d of %s", number, source or "<content>")
            await asyncio.sleep(0)
        entities.finish()

        # Stage 2 – regex enhancement over the same chunks
        enhancer = RegexEnhancerPass(builder, self.number_formats)
        for chunk in _chunks(lines, size):
            enhancer.feed(chunk)
            await asyncio.sleep(0)
        return builder.freeze()

    def _start(
        self,
        source: Optional[Path],
        depth: int,
        stack: IncludeStack,
        base_dir: Optional[Path] = None,
    ):
        if source is not None:
            self.include_graph.forget_includes_of(str(source))
            self.include_graph.add_file(str(source))
        if base_dir is None and source is not None:
            base_dir = source.parent
        builder = IndexBuilder(self.config.max_templates_per_payee)

        def include(argument: str) -> Optional[LedgerIndex]:
            return self._includes.resolve(argument, base_dir, depth, stack)

        return builder, EntityBuilderPass(builder, include, self.number_formats)

    def _parse_included(self, path: Path, depth: int, stack: IncludeStack) -> Optional[LedgerIndex]:
        try:
            size = path.stat().st_size
            self._check_size(path, size)
            lines = _read_lines(path)
        except OSError as exc:
            logger.warning("Skipping unreadable include %s: %s", path, exc)
            return None
        except FileSizeExceededError as exc:
            logger.warning("Skipping include: %s", exc)
            return None
        return self._build(lines, path, depth, stack)

    def _record_include(self, including: Optional[Path], included: Path) -> None:
        if including is not None:
            self.include_graph.add_include(str(including), str(included))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_size(self, path: Path, size: int) -> None:
        limit = self.config.max_file_size
        if limit is not None and size > limit:
            raise FileSizeExceededError(str(path), size, limit)

    @staticmethod
    def _source_path(base_path: Optional[PathArg]) -> Tuple[Optional[Path], Optional[Path]]:
        """``(source file, include base directory)`` for a content parse."""
        if base_path is None:
            return None, None
        path = Path(base_path).expanduser().resolve()
        if path.is_dir():
            return None, path
        return path, path.parent

    @staticmethod
    def _guarded(parse, source: Optional[Path]) -> LedgerIndex:
        try:
            return parse()
        except FileSizeExceededError:
            raise
        except Exception:
            logger.exception("Unexpected failure while parsing %s", source or "<content>")
            return LedgerIndex()

    async def _guarded_async(
        self,
        lines: Sequence[str],
        source: Optional[Path],
        stack: IncludeStack,
        base_dir: Optional[Path] = None,
    ) -> LedgerIndex:
        try:
            return await self._build_chunked(lines, source, stack, base_dir)
        except FileSizeExceededError:
            raise
        except Exception:
            logger.exception("Unexpected failure while parsing %s", source or "<content>")
            return LedgerIndex()

    def _cached_or_parse(self, path: Path, cache: Optional[ProjectCache]) -> LedgerIndex:
        if cache is None:
            return self.parse_file(path)
        index = cache.get(path)
        if index is not None:
            logger.debug("Cache hit for %s", path)
            return index
        index = self.parse_file(path)
        cache.set(path, index, self.include_graph.all_includes(str(path.resolve())))
        return index
