"""
IndexBuilder
============

The mutable draft behind every :class:`~ledger_index.models.LedgerIndex`.

A parse creates a fresh builder, the passes add facts to it line by line,
and :meth:`IndexBuilder.freeze` publishes an immutable index.  Combining
indices (include resolution, workspace aggregation, per-document views)
always goes through :meth:`IndexBuilder.merge`, which copies every
container it reads, so the source index is never aliased.

Merge rules
-----------
* Sets and set-valued maps: union.
* ``aliases`` and ``commodity_formats``: the merged-in entry overwrites.
* Usage counters: saturating addition.
* ``decimal_mark`` / ``default_commodity``: the merged-in value wins when set.
* ``last_date``: the greater string wins.
* Transaction templates: same-key templates combine their counts and keep
  the postings of the more recently used one; each payee is then pruned to
  ``max_templates_per_payee`` entries.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .identifiers import AccountName, CommodityCode, PayeeName, TagName, TagValue
from .models import (
    CommodityFormat,
    LedgerIndex,
    TemplatePosting,
    TransactionTemplate,
    template_key,
)
from .usage import UsageTracker, saturating_add

DEFAULT_MAX_TEMPLATES_PER_PAYEE = 5


class IndexBuilder:
    """Accumulates facts for one index."""

    def __init__(self, max_templates_per_payee: int = DEFAULT_MAX_TEMPLATES_PER_PAYEE) -> None:
        self.max_templates_per_payee = max_templates_per_payee
        self.accounts: Set[AccountName] = set()
        self.defined_accounts: Set[AccountName] = set()
        self.used_accounts: Set[AccountName] = set()
        self.payees: Set[PayeeName] = set()
        self.tags: Set[TagName] = set()
        self.commodities: Set[CommodityCode] = set()
        self.tag_values: Dict[TagName, Set[TagValue]] = {}
        self.aliases: Dict[AccountName, AccountName] = {}
        self.commodity_formats: Dict[CommodityCode, CommodityFormat] = {}
        self.decimal_mark: Optional[str] = None
        self.default_commodity: Optional[CommodityCode] = None
        self.last_date: Optional[str] = None
        self.usage = UsageTracker()
        self.payee_accounts: Dict[PayeeName, Set[AccountName]] = {}
        self.templates: Dict[PayeeName, Dict[Tuple[str, ...], TransactionTemplate]] = {}

    @classmethod
    def from_index(
        cls,
        index: LedgerIndex,
        max_templates_per_payee: int = DEFAULT_MAX_TEMPLATES_PER_PAYEE,
    ) -> "IndexBuilder":
        """Start a draft as a deep copy of *index*."""
        builder = cls(max_templates_per_payee)
        builder.merge(index)
        return builder

    # ------------------------------------------------------------------
    # Fact recording
    # ------------------------------------------------------------------

    def define_account(self, account: AccountName) -> None:
        self.defined_accounts.add(account)
        self.usage.accounts.increment(account)

    def use_account(self, account: AccountName) -> None:
        self.used_accounts.add(account)
        self.usage.accounts.increment(account)

    def add_alias(self, alias: AccountName, target: AccountName) -> None:
        self.aliases[alias] = target

    def add_payee(self, payee: PayeeName) -> None:
        self.payees.add(payee)
        self.usage.payees.increment(payee)

    def add_tag(self, tag: TagName, value: Optional[TagValue] = None) -> None:
        self.tags.add(tag)
        self.usage.tags.increment(tag)
        values = self.tag_values.setdefault(tag, set())
        if value is not None:
            values.add(value)
            self.usage.tag_values.increment((tag, value))

    def add_commodity(self, code: CommodityCode) -> None:
        self.commodities.add(code)
        self.usage.commodities.increment(code)

    def set_commodity_format(self, code: CommodityCode, fmt: CommodityFormat) -> None:
        self.commodity_formats[code] = fmt

    def set_decimal_mark(self, mark: str) -> None:
        self.decimal_mark = mark

    def set_default_commodity(self, code: CommodityCode) -> None:
        self.default_commodity = code

    def set_last_date(self, date: str) -> None:
        self.last_date = date

    def link_payee_account(self, payee: PayeeName, account: AccountName) -> None:
        self.payee_accounts.setdefault(payee, set()).add(account)
        self.usage.record_payee_account(payee, account)

    def record_template(
        self,
        payee: PayeeName,
        postings: Iterable[TemplatePosting],
        date: Optional[str],
    ) -> None:
        """Count one transaction of *payee* with the given posting shape."""
        postings = tuple(postings)
        key = template_key(p.account for p in postings)
        by_key = self.templates.setdefault(payee, {})
        existing = by_key.get(key)
        if existing is None:
            by_key[key] = TransactionTemplate(payee, postings, 1, date)
        else:
            by_key[key] = TransactionTemplate(
                payee,
                postings,
                saturating_add(existing.usage_count, 1),
                date or existing.last_used_date,
            )
        self._prune_templates(payee)

    # ------------------------------------------------------------------
    # Merge / publish
    # ------------------------------------------------------------------

    def merge(self, other: LedgerIndex) -> None:
        """Fold a published index into this draft."""
        self.accounts.update(other.accounts)
        self.defined_accounts.update(other.defined_accounts)
        self.used_accounts.update(other.used_accounts)
        self.payees.update(other.payees)
        self.tags.update(other.tags)
        self.commodities.update(other.commodities)
        for tag, values in other.tag_values.items():
            self.tag_values.setdefault(tag, set()).update(values)
        self.aliases.update(other.aliases)
        self.commodity_formats.update(other.commodity_formats)
        if other.decimal_mark is not None:
            self.decimal_mark = other.decimal_mark
        if other.default_commodity is not None:
            self.default_commodity = other.default_commodity
        if other.last_date is not None and (
            self.last_date is None or other.last_date > self.last_date
        ):
            self.last_date = other.last_date

        self.usage.accounts.merge(other.account_usage)
        self.usage.payees.merge(other.payee_usage)
        self.usage.tags.merge(other.tag_usage)
        self.usage.commodities.merge(other.commodity_usage)
        self.usage.tag_values.merge(other.tag_value_usage)
        self.usage.merge_payee_accounts(other.payee_account_usage)
        for payee, accounts in other.payee_accounts.items():
            self.payee_accounts.setdefault(payee, set()).update(accounts)

        for payee, templates in other.transaction_templates.items():
            by_key = self.templates.setdefault(payee, {})
            for template in templates:
                by_key[template.key] = _combine_templates(by_key.get(template.key), template)
            self._prune_templates(payee)

    def freeze(self) -> LedgerIndex:
        """Publish the draft; later changes to the builder do not affect the result."""
        accounts = frozenset(self.accounts | self.defined_accounts | self.used_accounts)
        return LedgerIndex(
            accounts=accounts,
            defined_accounts=frozenset(self.defined_accounts),
            used_accounts=frozenset(self.used_accounts),
            payees=frozenset(self.payees),
            tags=frozenset(self.tags),
            commodities=frozenset(self.commodities),
            tag_values=MappingProxyType(
                {t: frozenset(v) for t, v in self.tag_values.items()}
            ),
            aliases=MappingProxyType(dict(self.aliases)),
            commodity_formats=MappingProxyType(dict(self.commodity_formats)),
            decimal_mark=self.decimal_mark,
            default_commodity=self.default_commodity,
            last_date=self.last_date,
            account_usage=MappingProxyType(self.usage.accounts.as_dict()),
            payee_usage=MappingProxyType(self.usage.payees.as_dict()),
            tag_usage=MappingProxyType(self.usage.tags.as_dict()),
            commodity_usage=MappingProxyType(self.usage.commodities.as_dict()),
            tag_value_usage=MappingProxyType(self.usage.tag_values.as_dict()),
            payee_account_usage=MappingProxyType(
                {
                    p: MappingProxyType(counter.as_dict())
                    for p, counter in self.usage.payee_accounts.items()
                }
            ),
            payee_accounts=MappingProxyType(
                {p: frozenset(a) for p, a in self.payee_accounts.items()}
            ),
            transaction_templates=MappingProxyType(
                {
                    p: _ranked_templates(by_key.values())
                    for p, by_key in self.templates.items()
                    if by_key
                }
            ),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _prune_templates(self, payee: PayeeName) -> None:
        by_key = self.templates[payee]
        while len(by_key) > self.max_templates_per_payee:
            victim = min(
                by_key.values(),
                key=lambda t: (t.usage_count, t.last_used_date or "", t.key),
            )
            del by_key[victim.key]


def _combine_templates(
    existing: Optional[TransactionTemplate],
    incoming: TransactionTemplate,
) -> TransactionTemplate:
    if existing is None:
        return incoming
    newer = incoming
    if (existing.last_used_date or "") > (incoming.last_used_date or ""):
        newer = existing
    return TransactionTemplate(
        payee=incoming.payee,
        postings=newer.postings,
        usage_count=saturating_add(existing.usage_count, incoming.usage_count),
        last_used_date=newer.last_used_date,
    )


def _ranked_templates(templates: Iterable[TransactionTemplate]) -> Tuple[TransactionTemplate, ...]:
    ranked: List[TransactionTemplate] = sorted(
        templates, key=lambda t: (-t.usage_count, t.key)
    )
    return tuple(ranked)
