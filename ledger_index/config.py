"""
Parser configuration and parse-strategy selection.

:class:`ParserConfig` collects every tunable of the engine in one value that
is passed explicitly to :class:`~ledger_index.pipeline.ledger_parser.LedgerParser`;
there is no module-level mutable state.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, FrozenSet, Mapping, Optional, Tuple

PARSE_MODE_SYNC = "SYNC"
PARSE_MODE_CHUNKED = "CHUNKED"

DEFAULT_FILE_EXTENSIONS: Tuple[str, ...] = (".journal", ".hledger", ".ledger")

# Directory names never descended into during a workspace scan (in addition
# to every directory whose name starts with a dot).
DEFAULT_SKIP_DIRS: FrozenSet[str] = frozenset(
    {
        "node_modules", "build", "dist", "target", "bin", "obj", "out",
        "__pycache__", "coverage", "venv", "env",
    }
)


@dataclass(frozen=True)
class ParserConfig:
    """
    Tunables for parsing and workspace scanning.

    Attributes
    ----------
    max_include_depth:
        Deepest ``include`` nesting followed before the include is skipped.
    async_threshold:
        File size in bytes above which the async entry points switch to the
        chunked path.
    chunk_size:
        Lines per chunk in the chunked path.
    max_file_size:
        Files larger than this raise
        :class:`~ledger_index.errors.FileSizeExceededError`.  ``None``
        disables the check.
    batch_size:
        Files parsed concurrently by ``parse_files_async``.
    max_templates_per_payee:
        Transaction templates kept per payee; the least used are pruned.
    """

    max_include_depth: int = 10
    async_threshold: int = 1024 * 1024
    chunk_size: int = 1000
    max_file_size: Optional[int] = None
    batch_size: int = 3
    max_templates_per_payee: int = 5
    file_extensions: Tuple[str, ...] = DEFAULT_FILE_EXTENSIONS
    skip_dirs: FrozenSet[str] = field(default=DEFAULT_SKIP_DIRS)

    def __post_init__(self) -> None:
        for name in ("async_threshold", "chunk_size", "batch_size",
                     "max_templates_per_payee"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be a positive integer")
        if self.max_include_depth < 0:
            raise ValueError("max_include_depth must not be negative")
        if self.max_file_size is not None and self.max_file_size < 0:
            raise ValueError("max_file_size must not be negative")

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> "ParserConfig":
        """
        Build a config from host settings.

        Unknown keys are ignored so a host may pass its whole settings
        section.  Sequences are coerced to the field's container type.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in settings.items() if k in known}
        if "file_extensions" in kwargs:
            kwargs["file_extensions"] = tuple(
                ext if ext.startswith(".") else f".{ext}"
                for ext in kwargs["file_extensions"]
            )
        if "skip_dirs" in kwargs:
            kwargs["skip_dirs"] = frozenset(kwargs["skip_dirs"])
        return cls(**kwargs)


def select_parse_mode(config: ParserConfig, size_bytes: int) -> str:
    """Return :data:`PARSE_MODE_CHUNKED` for files above the async threshold."""
    if size_bytes > config.async_threshold:
        return PARSE_MODE_CHUNKED
    return PARSE_MODE_SYNC
