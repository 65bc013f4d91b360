"""
EntityBuilderPass
=================

Walks the token list once and records entities on an
:class:`~ledger_index.index_builder.IndexBuilder`.

+---------------------------+-----------------------------------------------+
| Token                     | Effect                                        |
+===========================+===============================================+
| ``account NAME``          | defined account                               |
+---------------------------+-----------------------------------------------+
| ``alias NAME = TARGET``   | alias (regex aliases are skipped)             |
+---------------------------+-----------------------------------------------+
| ``commodity CODE|TMPL``   | commodity, plus its format for a template     |
+---------------------------+-----------------------------------------------+
| ``D CODE|TMPL``           | default commodity (and commodity / format)    |
+---------------------------+-----------------------------------------------+
| ``decimal-mark . | ,``    | document decimal mark                         |
+---------------------------+-----------------------------------------------+
| ``payee`` / ``tag``       | declared payee / tag                          |
+---------------------------+-----------------------------------------------+
| ``P DATE CODE PRICE``     | both commodities                              |
+---------------------------+-----------------------------------------------+
| ``include PATH``          | handed to the include handler, result merged  |
+---------------------------+-----------------------------------------------+
| transaction header        | last date, payee                              |
+---------------------------+-----------------------------------------------+
| posting                   | used account, payee → account link            |
+---------------------------+-----------------------------------------------+

When a transaction closes with two or more postings its shape is recorded
as a transaction template for the payee.  Templates whose inference fails
are left to :class:`~ledger_index.passes.regex_enhancer.RegexEnhancerPass`.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional

from ..identifiers import (
    AccountName,
    CommodityCode,
    PayeeName,
    TagName,
    try_identifier,
)
from ..index_builder import IndexBuilder
from ..lexer.tokenizer import COMMENT, DIRECTIVE, POSTING, TRANSACTION, LedgerToken
from ..models import DECIMAL_MARKS, LedgerIndex, TemplatePosting
from ..services.number_format import NumberFormatService
from .regex_enhancer import extract_commodity, has_amount

logger = logging.getLogger(__name__)

IncludeHandler = Callable[[str], Optional[LedgerIndex]]

_ALIAS_RE = re.compile(r"^([^=]+)=(.+)$")
_FIELD_END_RE = re.compile(r" {2,}|\t")
_BARE_CODE_RE = re.compile(r"^(\"[^\"]+\"|\S+)")
_PRICE_DIRECTIVE_RE = re.compile(
    r"^\S+(?:\s+\d{1,2}:\d{2}(?::\d{2})?)?\s+(\"[^\"]+\"|\S+)\s+(.+)$"
)


class _OpenTransaction:
    __slots__ = ("payee", "date", "postings")

    def __init__(self, payee: Optional[PayeeName], date: Optional[str]) -> None:
        self.payee = payee
        self.date = date
        self.postings: List[TemplatePosting] = []


class EntityBuilderPass:
    """
    Token-driven entity extraction.

    Parameters
    ----------
    builder:
        Draft index receiving the facts.
    include_handler:
        Called with the raw argument of each ``include`` directive; returns
        the included index or ``None`` when the include is skipped.
    number_formats:
        Inference service for ``commodity`` / ``D`` templates.
    """

    def __init__(
        self,
        builder: IndexBuilder,
        include_handler: Optional[IncludeHandler] = None,
        number_formats: Optional[NumberFormatService] = None,
    ) -> None:
        self.builder = builder
        self.include_handler = include_handler
        self.number_formats = number_formats or NumberFormatService()
        self._current: Optional[_OpenTransaction] = None

    def run(self, tokens: Iterable[LedgerToken]) -> IndexBuilder:
        self.feed(tokens)
        self.finish()
        return self.builder

    def feed(self, tokens: Iterable[LedgerToken]) -> None:
        for token in tokens:
            if token.kind == TRANSACTION:
                self._close_transaction()
                self._transaction(token)
            elif token.kind == POSTING:
                self._posting(token)
            elif token.kind == COMMENT and token.indent > 0:
                continue
            else:
                self._close_transaction()
                if token.kind == DIRECTIVE:
                    self._directive(token)

    def finish(self) -> None:
        """Close the transaction still open at end of input."""
        self._close_transaction()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _transaction(self, token: LedgerToken) -> None:
        self.builder.set_last_date(token.date)
        payee = try_identifier(PayeeName, token.description)
        if payee is not None:
            self.builder.add_payee(payee)
        self._current = _OpenTransaction(payee, token.date)

    def _posting(self, token: LedgerToken) -> None:
        account = try_identifier(AccountName, token.account)
        if account is None:
            return
        self.builder.use_account(account)
        current = self._current
        if current is None:
            return
        if current.payee is not None:
            self.builder.link_payee_account(current.payee, account)
        current.postings.append(
            TemplatePosting(
                account=account,
                amount=token.amount,
                commodity=try_identifier(CommodityCode, extract_commodity(token.amount)),
            )
        )

    def _close_transaction(self) -> None:
        current, self._current = self._current, None
        if current is None or current.payee is None or len(current.postings) < 2:
            return
        self.builder.record_template(current.payee, current.postings, current.date)

    # ------------------------------------------------------------------
    # Directives
    # ------------------------------------------------------------------

    def _directive(self, token: LedgerToken) -> None:
        keyword, argument = token.keyword, token.argument or ""
        if keyword == "account":
            account = try_identifier(AccountName, _first_field(argument))
            if account is not None:
                self.builder.define_account(account)
        elif keyword == "alias":
            self._alias(argument)
        elif keyword in ("commodity", "D"):
            self._commodity(argument, is_default=keyword == "D")
        elif keyword == "decimal-mark":
            if argument in DECIMAL_MARKS:
                self.builder.set_decimal_mark(argument)
        elif keyword == "payee":
            payee = try_identifier(PayeeName, _first_field(argument))
            if payee is not None:
                self.builder.add_payee(payee)
        elif keyword == "tag":
            tag = try_identifier(TagName, _first_field(argument))
            if tag is not None:
                self.builder.add_tag(tag)
        elif keyword == "P":
            self._price(argument)
        elif keyword == "include":
            self._include(argument)

    def _alias(self, argument: str) -> None:
        match = _ALIAS_RE.match(argument)
        if match is None:
            return
        raw_alias, raw_target = match.group(1).strip(), match.group(2).strip()
        if raw_alias.startswith("/"):
            logger.debug("Skipping regex alias %r", raw_alias)
            return
        alias = try_identifier(AccountName, raw_alias)
        target = try_identifier(AccountName, raw_target)
        if alias is not None and target is not None:
            self.builder.add_alias(alias, target)

    def _commodity(self, argument: str, is_default: bool) -> None:
        if not argument:
            return
        if has_amount(argument):
            fmt = self.number_formats.parse_template(argument)
            if fmt is None:
                return
            code = try_identifier(CommodityCode, fmt.symbol)
            if code is None:
                return
            self.builder.set_commodity_format(code, fmt)
        else:
            code = try_identifier(CommodityCode, _BARE_CODE_RE.match(argument).group(1))
            if code is None:
                return
        self.builder.add_commodity(code)
        if is_default:
            self.builder.set_default_commodity(code)

    def _price(self, argument: str) -> None:
        match = _PRICE_DIRECTIVE_RE.match(argument)
        if match is None:
            return
        for raw in (match.group(1), extract_commodity(match.group(2))):
            code = try_identifier(CommodityCode, raw)
            if code is not None:
                self.builder.add_commodity(code)

    def _include(self, argument: str) -> None:
        if not argument or self.include_handler is None:
            return
        included = self.include_handler(argument)
        if included is not None:
            self.builder.merge(included)


def _first_field(argument: str) -> str:
    """Text up to the first run of two spaces or a tab."""
    return _FIELD_END_RE.split(argument.strip(), 1)[0].strip()
