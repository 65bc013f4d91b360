"""
RegexEnhancerPass
=================

Second pass over the *raw* journal lines that recovers what the token rules
keep simple:

* ``name:value`` tags (and ``#name`` hashtags) from every comment, with
  Unicode tag names;
* the commodity written in each posting's amount, price and balance
  assertion;
* ``commodity`` / ``D`` templates the format inference could not read:
  the trailing code is taken and a best-effort format is built from the
  numeric skeleton;
* ``commodity CODE`` followed by a ``format TEMPLATE`` line.

The pass keeps its own copy of the inside-transaction state machine and
writes into the same :class:`~ledger_index.index_builder.IndexBuilder` as
the entity builder.  It runs after the builder has merged any includes, so
it leaves ``decimal-mark`` to the builder.  A format the builder already
inferred is never replaced by a fallback guess.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Tuple

from ..identifiers import CommodityCode, TagName, TagValue, try_identifier
from ..index_builder import IndexBuilder
from ..lexer.tokenizer import (
    is_comment_line,
    is_indented,
    is_transaction_header,
    split_amount_fragment,
    split_inline_comment,
)
from ..models import CommodityFormat, NumberFormat
from ..services.number_format import NumberFormatService, is_currency_symbol

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(
    r"(?<![\w:#\-/.])#(?P<hname>\w+)(?::(?P<hvalue>[^,\s]*))?"
    r"|(?<![\w:#\-/.])(?P<name>\w+):(?P<value>[^,]*)"
)
_COMMODITY_WORD_RE = re.compile(r"\"[^\"]+\"|[^\W\d_]{2,}\d*")
_TRAILING_CODE_RE = re.compile(r"(\"[^\"]+\"|[^\W\d_]+\d*|[^\w\s.,'\"+\-])\W*$")
_DIRECTIVE_RE = re.compile(r"^(commodity|D|format)(?:\s+(.*))?$")
_ACCOUNT_END_RE = re.compile(r" {2,}|\t|@|=")
_BARE_CODE_RE = re.compile(r"^(\"[^\"]+\"|\S+)")
_QUOTED_RE = re.compile(r"\"[^\"]*\"")


# ---------------------------------------------------------------------------
# Extraction helpers (shared with the entity builder)
# ---------------------------------------------------------------------------


def extract_tags(comment: str) -> List[Tuple[str, Optional[str]]]:
    """
    Return ``(name, value)`` pairs found in *comment*.

    ``value`` is ``None`` for value-less tags.  A ``name:value`` value runs
    to the next comma; a hashtag value stops at whitespace too.

    >>> extract_tags("category:groceries, #food")
    [('category', 'groceries'), ('food', None)]
    """
    found: List[Tuple[str, Optional[str]]] = []
    for match in _TAG_RE.finditer(comment):
        if match.group("hname"):
            name, value = match.group("hname"), match.group("hvalue")
        else:
            name, value = match.group("name"), match.group("value")
        value = (value or "").strip()
        found.append((name, value or None))
    return found


def extract_commodity(fragment: Optional[str]) -> Optional[str]:
    """
    First commodity in an amount fragment: a currency sign, a quoted name,
    or two-or-more letters optionally followed by digits.
    """
    if not fragment:
        return None
    word = _COMMODITY_WORD_RE.search(fragment)
    sign_pos = next(
        (i for i, ch in enumerate(fragment) if is_currency_symbol(ch)), None
    )
    if sign_pos is not None and (word is None or sign_pos < word.start()):
        return fragment[sign_pos]
    if word is not None:
        return word.group(0).strip('"')
    return None


def has_amount(argument: str) -> bool:
    """True when *argument* holds a digit outside any quoted commodity name."""
    return any(ch.isdigit() for ch in _QUOTED_RE.sub("", argument))


def fallback_format(
    template: str,
    number_formats: NumberFormatService,
) -> Optional[Tuple[str, CommodityFormat]]:
    """
    Best-effort ``(code, format)`` for a template the inference rejected.

    The code is the trailing commodity-like run; the format comes from the
    digits and separators before it.
    """
    text = template.strip()
    match = _TRAILING_CODE_RE.search(text)
    if match is None:
        return None
    code = match.group(1).strip('"')
    prefix = text[:match.start(1)]
    skeleton = re.sub(r"[^\d.,'\s]", "", prefix)
    number = number_formats.infer_number_format(skeleton) or NumberFormat()
    spacing = bool(prefix) and prefix[-1].isspace()
    return code, CommodityFormat(number, code, False, spacing, text)


# ---------------------------------------------------------------------------
# Pass
# ---------------------------------------------------------------------------


class RegexEnhancerPass:
    """Regex-driven recovery pass over raw lines."""

    def __init__(
        self,
        builder: IndexBuilder,
        number_formats: Optional[NumberFormatService] = None,
    ) -> None:
        self.builder = builder
        self.number_formats = number_formats or NumberFormatService()
        self.in_transaction = False
        self.pending_format: Optional[CommodityCode] = None

    def run(self, lines: Iterable[str]) -> IndexBuilder:
        self.feed(lines)
        return self.builder

    def feed(self, lines: Iterable[str]) -> None:
        for line in lines:
            self._line(line)

    # ------------------------------------------------------------------

    def _line(self, line: str) -> None:
        stripped = line.strip()
        if not stripped:
            return
        indented = is_indented(line)
        if not indented:
            self.in_transaction = is_transaction_header(line)

        if is_comment_line(stripped, indented):
            self._tags(stripped[1:])
            return

        content, comment = split_inline_comment(line)
        if comment:
            self._tags(comment)

        if self.in_transaction:
            self.pending_format = None
            if indented:
                self._posting_commodities(content)
            return

        match = _DIRECTIVE_RE.match(content.strip())
        if match is None:
            if not indented:
                self.pending_format = None
            return
        keyword, argument = match.group(1), (match.group(2) or "").strip()
        if keyword == "format":
            self._format_line(argument)
        else:
            self._commodity_directive(argument, is_default=keyword == "D")

    def _tags(self, comment: str) -> None:
        for raw_name, raw_value in extract_tags(comment):
            name = try_identifier(TagName, raw_name)
            if name is None:
                continue
            self.builder.add_tag(name, try_identifier(TagValue, raw_value))

    def _posting_commodities(self, content: str) -> None:
        body = content.strip()
        match = _ACCOUNT_END_RE.search(body)
        if match is None:
            return
        for fragment in split_amount_fragment(body[match.start():]):
            code = try_identifier(CommodityCode, extract_commodity(fragment))
            if code is not None:
                self.builder.add_commodity(code)

    def _commodity_directive(self, argument: str, is_default: bool) -> None:
        self.pending_format = None
        if not argument:
            return
        if not has_amount(argument):
            if not is_default:
                bare = _BARE_CODE_RE.match(argument)
                self.pending_format = try_identifier(CommodityCode, bare.group(1))
            return
        if self.number_formats.parse_template(argument) is not None:
            # Read by the entity builder already.
            return
        result = fallback_format(argument, self.number_formats)
        if result is None:
            logger.debug("No commodity found in template %r", argument)
            return
        raw_code, fmt = result
        code = try_identifier(CommodityCode, raw_code)
        if code is None:
            return
        self.builder.add_commodity(code)
        self.builder.commodity_formats.setdefault(code, fmt)
        if is_default:
            self.builder.set_default_commodity(code)

    def _format_line(self, argument: str) -> None:
        pending, self.pending_format = self.pending_format, None
        if not argument:
            return
        if pending is not None:
            fmt = self.number_formats.infer(argument, pending)
            if fmt is not None:
                self.builder.set_commodity_format(pending, fmt)
            return
        fmt = self.number_formats.parse_template(argument)
        code = try_identifier(CommodityCode, fmt.symbol) if fmt else None
        if code is not None:
            self.builder.add_commodity(code)
            self.builder.set_commodity_format(code, fmt)
