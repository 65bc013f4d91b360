"""
Core data models for the ledger index.

:class:`LedgerIndex` is the published result of every parse.  It is a frozen
dataclass whose collections are ``frozenset`` objects and read-only mapping
proxies, so a cached index can be shared freely: nobody holding a reference
can add facts to it.  Facts are accumulated on an
:class:`~ledger_index.index_builder.IndexBuilder` draft instead.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .identifiers import (
    AccountName,
    CommodityCode,
    PayeeName,
    TagName,
    TagValue,
    try_identifier,
)
from .usage import sorted_by_usage


def _empty_mapping() -> Mapping:
    return MappingProxyType({})


# ---------------------------------------------------------------------------
# Number / commodity formats
# ---------------------------------------------------------------------------

DECIMAL_MARKS = (".", ",")


@dataclass(frozen=True)
class NumberFormat:
    """How the digits of an amount are written."""

    decimal_mark: str = "."
    group_separator: str = ""
    decimal_places: int = 2
    use_grouping: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decimal_mark": self.decimal_mark,
            "group_separator": self.group_separator,
            "decimal_places": self.decimal_places,
            "use_grouping": self.use_grouping,
        }


@dataclass(frozen=True)
class CommodityFormat:
    """
    Display format of one commodity, inferred from a template such as
    ``1 000,00 EUR`` or ``$1,000.00``.
    """

    format: NumberFormat
    symbol: str
    symbol_before: bool
    symbol_spacing: bool
    template: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format.to_dict(),
            "symbol": self.symbol,
            "symbol_before": self.symbol_before,
            "symbol_spacing": self.symbol_spacing,
            "template": self.template,
        }


# ---------------------------------------------------------------------------
# Transaction templates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TemplatePosting:
    """One posting line of a remembered transaction shape."""

    account: AccountName
    amount: Optional[str] = None
    commodity: Optional[CommodityCode] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": str(self.account),
            "amount": self.amount,
            "commodity": None if self.commodity is None else str(self.commodity),
        }


@dataclass(frozen=True)
class TransactionTemplate:
    """
    A distinct posting skeleton seen for a payee.

    Two transactions share a template when they post to the same set of
    accounts; :attr:`key` is that set as a sorted tuple.
    """

    payee: PayeeName
    postings: Tuple[TemplatePosting, ...]
    usage_count: int = 1
    last_used_date: Optional[str] = None

    @property
    def key(self) -> Tuple[str, ...]:
        return template_key(p.account for p in self.postings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payee": str(self.payee),
            "postings": [p.to_dict() for p in self.postings],
            "usage_count": self.usage_count,
            "last_used_date": self.last_used_date,
        }


def template_key(accounts) -> Tuple[str, ...]:
    return tuple(sorted(str(a) for a in accounts))


# ---------------------------------------------------------------------------
# LedgerIndex – the published parse result
# ---------------------------------------------------------------------------

USAGE_CATEGORIES = ("accounts", "payees", "tags", "commodities", "tag_values")


@dataclass(frozen=True)
class LedgerIndex:
    """
    Read-only index of the entities found in one or more journal files.

    ``accounts`` always contains ``defined_accounts | used_accounts``.
    ``decimal_mark`` is ``None`` unless a ``decimal-mark`` directive was
    seen; use :attr:`effective_decimal_mark` for display.
    """

    accounts: FrozenSet[AccountName] = frozenset()
    defined_accounts: FrozenSet[AccountName] = frozenset()
    used_accounts: FrozenSet[AccountName] = frozenset()
    payees: FrozenSet[PayeeName] = frozenset()
    tags: FrozenSet[TagName] = frozenset()
    commodities: FrozenSet[CommodityCode] = frozenset()
    tag_values: Mapping[TagName, FrozenSet[TagValue]] = field(default_factory=_empty_mapping)
    aliases: Mapping[AccountName, AccountName] = field(default_factory=_empty_mapping)
    commodity_formats: Mapping[CommodityCode, CommodityFormat] = field(default_factory=_empty_mapping)
    decimal_mark: Optional[str] = None
    default_commodity: Optional[CommodityCode] = None
    last_date: Optional[str] = None
    account_usage: Mapping[AccountName, int] = field(default_factory=_empty_mapping)
    payee_usage: Mapping[PayeeName, int] = field(default_factory=_empty_mapping)
    tag_usage: Mapping[TagName, int] = field(default_factory=_empty_mapping)
    commodity_usage: Mapping[CommodityCode, int] = field(default_factory=_empty_mapping)
    tag_value_usage: Mapping[Tuple[TagName, TagValue], int] = field(default_factory=_empty_mapping)
    payee_account_usage: Mapping[PayeeName, Mapping[AccountName, int]] = field(
        default_factory=_empty_mapping
    )
    payee_accounts: Mapping[PayeeName, FrozenSet[AccountName]] = field(default_factory=_empty_mapping)
    transaction_templates: Mapping[PayeeName, Tuple[TransactionTemplate, ...]] = field(
        default_factory=_empty_mapping
    )

    # ------------------------------------------------------------------
    # Convenience views
    # ------------------------------------------------------------------

    @property
    def effective_decimal_mark(self) -> str:
        return self.decimal_mark or "."

    def is_empty(self) -> bool:
        return not (
            self.accounts or self.payees or self.tags or self.commodities
            or self.aliases or self.commodity_formats or self.last_date
        )

    def accounts_by_usage(self) -> List[Tuple[AccountName, int]]:
        return sorted_by_usage(self.account_usage)

    def payees_by_usage(self) -> List[Tuple[PayeeName, int]]:
        return sorted_by_usage(self.payee_usage)

    def tags_by_usage(self) -> List[Tuple[TagName, int]]:
        return sorted_by_usage(self.tag_usage)

    def commodities_by_usage(self) -> List[Tuple[CommodityCode, int]]:
        return sorted_by_usage(self.commodity_usage)

    def accounts_for_payee(self, payee: str) -> List[Tuple[AccountName, int]]:
        """Accounts used with *payee*, most frequent first."""
        key = try_identifier(PayeeName, payee)
        return sorted_by_usage(self.payee_account_usage.get(key, {})) if key else []

    def templates_for(self, payee: str) -> Tuple[TransactionTemplate, ...]:
        key = try_identifier(PayeeName, payee)
        return self.transaction_templates.get(key, ()) if key else ()

    def usage_of(self, category: str, key: Any) -> int:
        """
        Usage count of *key* within *category* (one of
        :data:`USAGE_CATEGORIES`).  Absent keys count zero.
        """
        table = {
            "accounts": self.account_usage,
            "payees": self.payee_usage,
            "tags": self.tag_usage,
            "commodities": self.commodity_usage,
            "tag_values": self.tag_value_usage,
        }.get(category)
        if table is None:
            raise ValueError(f"Unknown usage category {category!r}")
        return table.get(key, 0)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accounts": sorted(self.accounts),
            "defined_accounts": sorted(self.defined_accounts),
            "used_accounts": sorted(self.used_accounts),
            "payees": sorted(self.payees),
            "tags": sorted(self.tags),
            "commodities": sorted(self.commodities),
            "tag_values": {t: sorted(v) for t, v in sorted(self.tag_values.items())},
            "aliases": dict(sorted(self.aliases.items())),
            "commodity_formats": {
                c: f.to_dict() for c, f in sorted(self.commodity_formats.items())
            },
            "decimal_mark": self.decimal_mark,
            "default_commodity": self.default_commodity,
            "last_date": self.last_date,
            "usage": {
                "accounts": dict(self.accounts_by_usage()),
                "payees": dict(self.payees_by_usage()),
                "tags": dict(self.tags_by_usage()),
                "commodities": dict(self.commodities_by_usage()),
                "tag_values": {
                    f"{t}:{v}": n for (t, v), n in sorted_by_usage(self.tag_value_usage)
                },
                "payee_accounts": {
                    p: dict(sorted_by_usage(counts))
                    for p, counts in sorted(self.payee_account_usage.items())
                },
            },
            "transaction_templates": {
                p: [t.to_dict() for t in templates]
                for p, templates in sorted(self.transaction_templates.items())
            },
        }

    def __repr__(self) -> str:
        return (
            f"LedgerIndex(accounts={len(self.accounts)}, payees={len(self.payees)}, "
            f"tags={len(self.tags)}, commodities={len(self.commodities)})"
        )
