"""
Identifier constructors
=======================

Each identifier category is a distinct :class:`str` subclass so account
names, payees, tags, tag values and commodity codes cannot be silently
mixed up.  Validation happens at construction time: a value that exists is
a value that passed its rules.

+------------------+-----------------------------------------------------+
| Type             | Rules                                               |
+==================+=====================================================+
| ``AccountName``  | non-empty, no surrounding whitespace, no trailing   |
|                  | ``:``                                               |
+------------------+-----------------------------------------------------+
| ``PayeeName``    | trimmed, NFC-normalised, non-empty                  |
+------------------+-----------------------------------------------------+
| ``TagName``      | trimmed, non-empty, no ``:``                        |
+------------------+-----------------------------------------------------+
| ``TagValue``     | trimmed, non-empty                                  |
+------------------+-----------------------------------------------------+
| ``CommodityCode``| trimmed, outer double quotes removed, non-empty     |
+------------------+-----------------------------------------------------+
"""
from __future__ import annotations

import unicodedata
from typing import Optional, Type, TypeVar

from .errors import InvalidIdentifierError

_T = TypeVar("_T", bound="_Identifier")


class _Identifier(str):
    """Common base: subclasses override :meth:`_clean`."""

    kind = "identifier"

    def __new__(cls, raw: str):
        if not isinstance(raw, str):
            raise InvalidIdentifierError(cls.kind, raw, "not a string")
        return super().__new__(cls, cls._clean(raw))

    @classmethod
    def _clean(cls, raw: str) -> str:
        value = raw.strip()
        if not value:
            raise InvalidIdentifierError(cls.kind, raw, "empty")
        return value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str.__repr__(self)})"


class AccountName(_Identifier):
    """A colon-separated account path such as ``Assets:Bank:Checking``."""

    kind = "account name"

    @classmethod
    def _clean(cls, raw: str) -> str:
        if not raw or not raw.strip():
            raise InvalidIdentifierError(cls.kind, raw, "empty")
        if raw != raw.strip():
            raise InvalidIdentifierError(
                cls.kind, raw, "leading or trailing whitespace"
            )
        if raw.endswith(":"):
            raise InvalidIdentifierError(cls.kind, raw, "ends with ':'")
        return raw


class PayeeName(_Identifier):
    """Transaction description; canonically composed so equal text compares equal."""

    kind = "payee name"

    @classmethod
    def _clean(cls, raw: str) -> str:
        return super()._clean(unicodedata.normalize("NFC", raw))


class TagName(_Identifier):
    kind = "tag name"

    @classmethod
    def _clean(cls, raw: str) -> str:
        value = super()._clean(raw)
        if ":" in value:
            raise InvalidIdentifierError(cls.kind, raw, "contains ':'")
        return value


class TagValue(_Identifier):
    kind = "tag value"


class CommodityCode(_Identifier):
    """Currency symbol or unit name (``$``, ``EUR``, ``"AAPL 2030"``)."""

    kind = "commodity code"

    @classmethod
    def _clean(cls, raw: str) -> str:
        value = raw.strip()
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
        return super()._clean(value)


def try_identifier(cls: Type[_T], raw: Optional[str]) -> Optional[_T]:
    """
    Build an identifier of type *cls*, returning ``None`` when *raw* is
    missing or invalid.

    The passes use this so that a single bad substring drops one fact
    instead of aborting the parse.
    """
    if raw is None:
        return None
    try:
        return cls(raw)
    except InvalidIdentifierError:
        return None
