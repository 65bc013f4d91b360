"""
LineTokenizer
=============

Turns journal text into a flat list of :class:`LedgerToken` objects, one per
non-blank line.  The only state carried from one line to the next is whether
the tokenizer is currently inside a transaction body.

Line classification:

+----------------+---------------------------------------------------------+
| Kind           | Shape                                                   |
+================+=========================================================+
| ``COMMENT``    | first non-blank character is ``;`` or ``#`` (or ``*``   |
|                | at column 0)                                            |
+----------------+---------------------------------------------------------+
| ``TRANSACTION``| column 0 date: ``YYYY-MM-DD`` / ``MM-DD`` (``-/.``)     |
+----------------+---------------------------------------------------------+
| ``POSTING``    | indented by two spaces or a tab inside a transaction    |
+----------------+---------------------------------------------------------+
| ``DIRECTIVE``  | starts with a directive keyword (``account``, ``D`` …)  |
+----------------+---------------------------------------------------------+
| ``TEXT``       | anything else; carried forward and ignored downstream   |
+----------------+---------------------------------------------------------+

Inline comments begin at the first ``;`` or at a ``#`` that follows two
spaces or a tab, so descriptions like ``Invoice #12`` survive intact.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

# ---------------------------------------------------------------------------
# Token kinds
# ---------------------------------------------------------------------------

COMMENT = "COMMENT"
DIRECTIVE = "DIRECTIVE"
TRANSACTION = "TRANSACTION"
POSTING = "POSTING"
TEXT = "TEXT"

TOKEN_KINDS = {COMMENT, DIRECTIVE, TRANSACTION, POSTING, TEXT}

DIRECTIVE_KEYWORDS = (
    "account", "alias", "commodity", "D", "decimal-mark", "include",
    "format", "payee", "tag", "P", "Y", "year",
)

# ---------------------------------------------------------------------------
# Shared line patterns (also used by the regex enhancer)
# ---------------------------------------------------------------------------

DATE_RE = re.compile(r"^(\d{4}[-/.]\d{1,2}[-/.]\d{1,2}|\d{1,2}[-/.]\d{1,2})(?=[\s=;]|$)")
_SECONDARY_DATE_RE = re.compile(r"^=(\d{4}[-/.]\d{1,2}[-/.]\d{1,2}|\d{1,2}[-/.]\d{1,2})")
_STATUS_RE = re.compile(r"^([*!])\s*")
_CODE_RE = re.compile(r"^\(([^)]*)\)\s*")
_DIRECTIVE_RE = re.compile(
    r"^(" + "|".join(re.escape(k) for k in sorted(DIRECTIVE_KEYWORDS, key=len, reverse=True))
    + r")(?:\s+(.*))?$"
)
_INLINE_HASH_RE = re.compile(r"(?:  |\t)#")
_ACCOUNT_END_RE = re.compile(r" {2,}|\t|@|=")
_PRICE_RE = re.compile(r"@@?")
_ASSERTION_RE = re.compile(r"==?\*?")


def is_indented(line: str) -> bool:
    """Two-or-more leading spaces, or a leading tab."""
    return line.startswith("\t") or line.startswith("  ")


def split_inline_comment(text: str) -> Tuple[str, Optional[str]]:
    """
    Split *text* into ``(content, comment)``.

    The comment is returned without its marker, or ``None`` when the line
    has none.
    """
    cut = text.find(";")
    match = _INLINE_HASH_RE.search(text)
    if match and (cut == -1 or match.end() - 1 < cut):
        cut = match.end() - 1
    if cut == -1:
        return text, None
    return text[:cut], text[cut + 1:]


def is_transaction_header(line: str) -> bool:
    return DATE_RE.match(line) is not None


def is_comment_line(stripped: str, indented: bool) -> bool:
    if not stripped:
        return False
    if stripped[0] in ";#":
        return True
    return not indented and stripped[0] == "*"


# ---------------------------------------------------------------------------
# Token
# ---------------------------------------------------------------------------


@dataclass
class LedgerToken:
    """
    One classified journal line.

    Only the fields relevant to :attr:`kind` are populated; the rest stay
    ``None``.
    """

    kind: str
    line_no: int
    raw_text: str
    indent: int = 0
    comment: Optional[str] = None
    # DIRECTIVE
    keyword: Optional[str] = None
    argument: Optional[str] = None
    # TRANSACTION
    date: Optional[str] = None
    secondary_date: Optional[str] = None
    status: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    # POSTING
    account: Optional[str] = None
    amount: Optional[str] = None
    price: Optional[str] = None
    assertion: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in TOKEN_KINDS:
            raise ValueError(f"Unknown token kind {self.kind!r}")

    def __repr__(self) -> str:
        return f"LedgerToken(kind={self.kind!r}, line={self.line_no}, text={self.raw_text!r})"


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


class LineTokenizer:
    """
    Incremental line tokenizer.

    :meth:`tokenize` handles a whole document.  :meth:`feed` accepts the
    document in pieces and keeps the transaction state between calls, so
    feeding chunks produces exactly the tokens a single call would.
    """

    def __init__(self) -> None:
        self.in_transaction = False
        self._line_no = 0

    def reset(self) -> None:
        self.in_transaction = False
        self._line_no = 0

    def tokenize(self, content: str) -> List[LedgerToken]:
        self.reset()
        return self.feed(content.splitlines())

    def feed(self, lines: Iterable[str]) -> List[LedgerToken]:
        tokens: List[LedgerToken] = []
        for line in lines:
            self._line_no += 1
            token = self.classify(line, self._line_no)
            if token is not None:
                tokens.append(token)
        return tokens

    def classify(self, line: str, line_no: int = 0) -> Optional[LedgerToken]:
        """Classify one line, updating the transaction state.  Blank lines give ``None``."""
        stripped = line.strip()
        if not stripped:
            return None

        indented = is_indented(line)
        indent = len(line) - len(line.lstrip())

        if not indented:
            self.in_transaction = is_transaction_header(line)

        if is_comment_line(stripped, indented):
            return LedgerToken(COMMENT, line_no, line, indent, comment=stripped[1:].strip())

        if self.in_transaction and not indented:
            return self._transaction(line, line_no)
        if self.in_transaction and indented:
            return self._posting(line, line_no, indent)
        return self._directive_or_text(line, line_no, indent)

    # ------------------------------------------------------------------
    # Line shapes
    # ------------------------------------------------------------------

    @staticmethod
    def _transaction(line: str, line_no: int) -> LedgerToken:
        content, comment = split_inline_comment(line)
        match = DATE_RE.match(content)
        date = match.group(1)
        rest = content[match.end():]

        secondary = None
        sec = _SECONDARY_DATE_RE.match(rest)
        if sec:
            secondary = sec.group(1)
            rest = rest[sec.end():]
        rest = rest.lstrip()

        status = None
        st = _STATUS_RE.match(rest)
        if st:
            status = st.group(1)
            rest = rest[st.end():]

        code = None
        cd = _CODE_RE.match(rest)
        if cd:
            code = cd.group(1).strip()
            rest = rest[cd.end():]

        return LedgerToken(
            TRANSACTION,
            line_no,
            line,
            comment=_clean_comment(comment),
            date=date,
            secondary_date=secondary,
            status=status,
            code=code,
            description=rest.strip() or None,
        )

    @staticmethod
    def _posting(line: str, line_no: int, indent: int) -> LedgerToken:
        content, comment = split_inline_comment(line)
        body = content.strip()
        status = None
        st = _STATUS_RE.match(body)
        if st and len(body) > 1 and body[1].isspace():
            status = st.group(1)
            body = body[st.end():]

        match = _ACCOUNT_END_RE.search(body)
        account = body if match is None else body[:match.start()]
        remainder = "" if match is None else body[match.start():]
        account = _strip_virtual(account.strip())
        amount, price, assertion = split_amount_fragment(remainder)

        return LedgerToken(
            POSTING,
            line_no,
            line,
            indent,
            comment=_clean_comment(comment),
            status=status,
            account=account or None,
            amount=amount,
            price=price,
            assertion=assertion,
        )

    @staticmethod
    def _directive_or_text(line: str, line_no: int, indent: int) -> LedgerToken:
        content, comment = split_inline_comment(line)
        match = _DIRECTIVE_RE.match(content.strip())
        if match is None:
            return LedgerToken(TEXT, line_no, line, indent, comment=_clean_comment(comment))
        argument = (match.group(2) or "").strip()
        return LedgerToken(
            DIRECTIVE,
            line_no,
            line,
            indent,
            comment=_clean_comment(comment),
            keyword="Y" if match.group(1) == "year" else match.group(1),
            argument=argument or None,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def split_amount_fragment(text: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """
    Split the part of a posting after the account into
    ``(amount, price, assertion)``.

    >>> split_amount_fragment("  10 EUR @ 1.10 USD = 50 EUR")
    ('10 EUR', '1.10 USD', '50 EUR')
    """
    assertion = None
    match = _ASSERTION_RE.search(text)
    if match:
        assertion = text[match.end():].strip() or None
        text = text[:match.start()]
    price = None
    match = _PRICE_RE.search(text)
    if match:
        price = text[match.end():].strip() or None
        text = text[:match.start()]
    return text.strip() or None, price, assertion


def _strip_virtual(account: str) -> str:
    if len(account) >= 2 and (account[0], account[-1]) in (("(", ")"), ("[", "]")):
        return account[1:-1].strip()
    return account


def _clean_comment(comment: Optional[str]) -> Optional[str]:
    if comment is None:
        return None
    return comment.strip()
