"""
NumberFormatService
===================

Infers how a commodity's amounts are written from an example literal, as
found in ``commodity``, ``D`` and ``format`` directives::

    commodity 1 000,00 EUR      ->  decimal ',', group ' ', 2 places, after, spaced
    D $1,000.00                 ->  decimal '.', group ',', 2 places, before, unspaced

Algorithm
---------
1. Isolate the numeric skeleton: everything from the first to the last digit
   (a separator directly before the first digit is kept, so ``.50`` works).
2. The right-most digit run preceded by ``.`` or ``,`` is the fraction, and
   that separator the decimal mark, unless the same character already
   occurs in the integer portion (``1,000,000``).  Runs of 1–4 digits are
   the usual case; longer runs (``0.00000001 BTC``) cannot be a group of
   three, so they are read as a fraction too.
3. Any separator left in the integer portion is the grouping separator.
   Unicode spaces count as ``' '``.
4. Integer-only examples fall back to the grouping separator alone: a space
   or ``.`` grouping implies ``,`` as the decimal mark, a ``,`` grouping
   implies ``.``.  The decimal-place count is then 0.

The service never raises on odd input.  It returns ``None`` when it cannot
make a guess, and callers fall back to a simpler extraction.
"""
from __future__ import annotations

import logging
import re
import unicodedata
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple

from ..models import CommodityFormat, NumberFormat

logger = logging.getLogger(__name__)

_DECIMAL_RE = re.compile(r"^(.*?)([.,])(\d+)$")
_SKELETON_CHARS = set("0123456789 .,'")
_FALLBACK_DECIMAL = {" ": ",", ".": ",", ",": ".", "'": "."}

# A commodity symbol in a template: a quoted name, a letter run, or a run of
# symbol characters such as ``$`` or ``€``.
_SYMBOL = r"(?:\"[^\"]+\"|[^\W\d_]+\d*|[^\w\s\-+.,'\"]+)"
_TEMPLATE_RE = re.compile(
    r"^\s*(?P<sign>[-+])?\s*(?P<pre>" + _SYMBOL + r")?"
    r"(?P<num>[\s\-+]*[\d.,'\s]*\d)"
    r"\s*(?P<post>" + _SYMBOL + r")?\s*$"
)


def is_currency_symbol(ch: str) -> bool:
    return len(ch) == 1 and unicodedata.category(ch) == "Sc"


def _normalise_spaces(text: str) -> str:
    return "".join(" " if ch.isspace() else ch for ch in text)


def _digit_span(text: str) -> Optional[Tuple[int, int]]:
    digits = [i for i, ch in enumerate(text) if ch.isdigit()]
    if not digits:
        return None
    return digits[0], digits[-1] + 1


class NumberFormatService:
    """Stateless inference of :class:`NumberFormat` / :class:`CommodityFormat`."""

    # ------------------------------------------------------------------
    # Number part only
    # ------------------------------------------------------------------

    def infer_number_format(self, number_text: str) -> Optional[NumberFormat]:
        """
        Infer the digit layout of *number_text*.

        Returns ``None`` when the text holds no digits or contains characters
        that cannot belong to a number.
        """
        span = _digit_span(number_text)
        if span is None:
            return None
        start, end = span
        if start > 0 and number_text[start - 1] in ".,":
            start -= 1
        skeleton = _normalise_spaces(number_text[start:end])
        if not set(skeleton) <= _SKELETON_CHARS:
            logger.debug("Unrecognised characters in number %r", number_text)
            return None

        match = _DECIMAL_RE.match(skeleton)
        if match:
            integer, mark, fraction = match.groups()
            if mark not in integer:
                group = self._group_separator(integer)
                return NumberFormat(
                    decimal_mark=mark,
                    group_separator=group,
                    decimal_places=len(fraction),
                    use_grouping=bool(group),
                )

        group = self._group_separator(skeleton)
        return NumberFormat(
            decimal_mark=_FALLBACK_DECIMAL.get(group, "."),
            group_separator=group,
            decimal_places=0,
            use_grouping=bool(group),
        )

    @staticmethod
    def _group_separator(integer: str) -> str:
        for ch in integer:
            if not ch.isdigit():
                return ch
        return ""

    # ------------------------------------------------------------------
    # Number + symbol
    # ------------------------------------------------------------------

    def infer(self, example: str, symbol: Optional[str] = None) -> Optional[CommodityFormat]:
        """
        Infer the commodity format of *example*.

        Parameters
        ----------
        example:
            Example amount, with or without the symbol (``1 000,00 EUR``).
        symbol:
            The commodity symbol.  When omitted it is located in *example*
            by :meth:`parse_template`.  When given but absent from the
            example, a currency sign is assumed to precede the number
            unspaced and any other code to follow it after a space.
        """
        if symbol is None:
            return self.parse_template(example)
        text = example.strip()
        symbol = symbol.strip().strip('"')
        if not symbol:
            return None

        start = text.find(symbol)
        if start == -1:
            number = self.infer_number_format(text)
            if number is None:
                return None
            before = len(symbol) == 1 and is_currency_symbol(symbol)
            return CommodityFormat(number, symbol, before, not before, text)

        end = start + len(symbol)
        if start > 0 and end < len(text) and text[start - 1] == '"' and text[end] == '"':
            start, end = start - 1, end + 1
        number_text = text[:start] + text[end:]
        return self._build(text, number_text, symbol, start, end)

    def parse_template(self, template: str) -> Optional[CommodityFormat]:
        """
        Locate the symbol in *template* and infer its format.

        Returns ``None`` when the template has no symbol, symbols on both
        sides, or no number.
        """
        match = _TEMPLATE_RE.match(template)
        if match is None:
            return None
        pre, post = match.group("pre"), match.group("post")
        if (pre is None) == (post is None):
            return None
        group = "pre" if pre is not None else "post"
        symbol = (pre or post).strip('"')
        text = template.strip()
        offset = len(template) - len(template.lstrip())
        start, end = match.start(group) - offset, match.end(group) - offset
        return self._build(text, text[:start] + text[end:], symbol, start, end)

    def _build(
        self,
        text: str,
        number_text: str,
        symbol: str,
        sym_start: int,
        sym_end: int,
    ) -> Optional[CommodityFormat]:
        number = self.infer_number_format(number_text)
        masked = text[:sym_start] + " " * (sym_end - sym_start) + text[sym_end:]
        span = _digit_span(masked)
        if number is None or span is None:
            return None
        first_digit, last_digit = span
        before = sym_start < first_digit
        if before:
            gap = text[sym_end:first_digit]
        else:
            gap = text[last_digit:sym_start]
        spacing = any(ch.isspace() for ch in gap)
        return CommodityFormat(
            format=number,
            symbol=symbol,
            symbol_before=before,
            symbol_spacing=spacing,
            template=text,
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, value: Decimal, fmt: CommodityFormat) -> str:
        """
        Write *value* the way *fmt* describes.

        >>> svc = NumberFormatService()
        >>> svc.render(Decimal("-1234.5"), svc.infer("1 000,00 EUR"))
        '-1 234,50 EUR'
        """
        number = fmt.format
        places = max(number.decimal_places, 0)
        quantum = Decimal(1).scaleb(-places)
        rounded = Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)
        sign = "-" if rounded < 0 else ""
        digits = f"{abs(rounded):f}"
        integer, _, fraction = digits.partition(".")
        if number.use_grouping and number.group_separator:
            groups = []
            while len(integer) > 3:
                groups.insert(0, integer[-3:])
                integer = integer[:-3]
            groups.insert(0, integer)
            integer = number.group_separator.join(groups)
        body = integer + (number.decimal_mark + fraction if places else "")
        space = " " if fmt.symbol_spacing else ""
        symbol = f'"{fmt.symbol}"' if any(ch.isspace() or ch.isdigit() for ch in fmt.symbol) else fmt.symbol
        if fmt.symbol_before:
            return f"{sign}{symbol}{space}{body}"
        return f"{sign}{body}{space}{symbol}"
