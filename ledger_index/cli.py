"""
Ledger Index – command-line interface
=====================================

Usage
-----
::

    python -m ledger_index.cli SOURCE [OPTIONS]

Options
-------
--workspace, -w        Treat SOURCE as a directory and index every journal in it.
--output, -o           Output file path (default: stdout).
--format, -f           Output format: ``json`` (default) or ``text``.
--max-include-depth N  Deepest include nesting followed (default 10).
--max-file-size BYTES  Refuse files larger than BYTES.
--graph                Print the include graph instead of the index.
--verbose, -v          Enable DEBUG logging.

Examples
--------
::

    python -m ledger_index.cli main.journal
    python -m ledger_index.cli ~/finance -w -f text
    python -m ledger_index.cli main.journal --graph -o includes.json
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .cache.project_cache import ProjectCache
from .config import ParserConfig
from .errors import FileSizeExceededError
from .models import LedgerIndex
from .pipeline.ledger_parser import LedgerParser

_TOP_N = 10


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ledger_index",
        description="Ledger Index – index the entities of hledger/ledger journals",
    )
    p.add_argument("source", help="Journal file (or directory with --workspace)")
    p.add_argument(
        "--workspace", "-w",
        action="store_true",
        help="Index every journal file under SOURCE",
    )
    p.add_argument(
        "--output", "-o",
        default="-",
        metavar="FILE",
        help="Output file (default: stdout)",
    )
    p.add_argument(
        "--format", "-f",
        choices=["json", "text"],
        default="json",
        help="Output format (default: json)",
    )
    p.add_argument(
        "--max-include-depth",
        type=int,
        default=10,
        metavar="N",
        help="Deepest include nesting followed (default: 10)",
    )
    p.add_argument(
        "--max-file-size",
        type=int,
        default=None,
        metavar="BYTES",
        help="Fail on journal files larger than BYTES",
    )
    p.add_argument(
        "--graph",
        action="store_true",
        help="Output the include graph (JSON) instead of the index",
    )
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return p


def _format_text(index: LedgerIndex) -> str:
    lines: List[str] = []

    def _section(title: str, ranked) -> None:
        lines.append(f"\n{'═' * 60}\n  {title}\n{'═' * 60}")
        if not ranked:
            lines.append("  (none)")
        for name, uses in ranked[:_TOP_N]:
            lines.append(f"  {uses:>6}  {name}")
        if len(ranked) > _TOP_N:
            lines.append(f"  … {len(ranked) - _TOP_N} more")

    _section(f"ACCOUNTS ({len(index.accounts)})", index.accounts_by_usage())
    _section(f"PAYEES ({len(index.payees)})", index.payees_by_usage())
    _section(f"TAGS ({len(index.tags)})", index.tags_by_usage())
    _section(f"COMMODITIES ({len(index.commodities)})", index.commodities_by_usage())

    if index.commodity_formats:
        lines.append(f"\n{'─' * 60}\n  Commodity formats")
        for code, fmt in sorted(index.commodity_formats.items()):
            lines.append(f"  {code:<10} {fmt.template}")
    if index.aliases:
        lines.append(f"\n{'─' * 60}\n  Aliases")
        for alias, target in sorted(index.aliases.items()):
            lines.append(f"  {alias} = {target}")

    lines.append(f"\n{'─' * 60}")
    lines.append(f"  Decimal mark      : {index.effective_decimal_mark}")
    lines.append(f"  Default commodity : {index.default_commodity or '(none)'}")
    lines.append(f"  Last date         : {index.last_date or '(none)'}")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    source = Path(args.source).expanduser()
    if not source.exists():
        print(f"error: {source} does not exist", file=sys.stderr)
        return 2

    try:
        config = ParserConfig(
            max_include_depth=args.max_include_depth,
            max_file_size=args.max_file_size,
        )
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    ledger = LedgerParser(config)

    try:
        if args.workspace:
            index = ledger.parse_workspace(source, cache=ProjectCache())
        else:
            index = ledger.parse_file(source)
    except FileSizeExceededError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.graph:
        output_text = json.dumps(ledger.include_graph.to_dict(), indent=2)
    elif args.format == "json":
        output_text = json.dumps(index.to_dict(), indent=2, ensure_ascii=False)
    else:
        output_text = _format_text(index)

    if args.output == "-":
        print(output_text)
    else:
        Path(args.output).write_text(output_text, encoding="utf-8")
        print(f"Output written to {args.output}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    sys.exit(main())
