"""
Usage tracking
==============

Pure occurrence counters keyed by validated identifiers.  The engine bumps a
counter once per extraction event; the editor layer reads the
descending-usage views to rank suggestions.

Counters saturate at :data:`USAGE_COUNT_CEILING` instead of growing without
bound, and they never decrease.
"""
from __future__ import annotations

import sys
from typing import Dict, Generic, Hashable, Iterator, List, Mapping, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)

USAGE_COUNT_CEILING = sys.maxsize


def saturating_add(a: int, b: int) -> int:
    total = a + b
    return USAGE_COUNT_CEILING if total > USAGE_COUNT_CEILING else total


def sorted_by_usage(counts: Mapping[K, int]) -> List[Tuple[K, int]]:
    """
    Return ``(key, count)`` pairs ordered by descending count.

    Ties are broken by the key's string form so the view is deterministic.
    """
    return sorted(counts.items(), key=lambda kv: (-kv[1], str(kv[0])))


class UsageCounter(Generic[K]):
    """A saturating counter for one entity class."""

    def __init__(self, initial: Optional[Mapping[K, int]] = None) -> None:
        self._counts: Dict[K, int] = dict(initial) if initial else {}

    def increment(self, key: K, amount: int = 1) -> None:
        if amount < 0:
            raise ValueError("usage counters never decrease")
        self._counts[key] = saturating_add(self._counts.get(key, 0), amount)

    def merge(self, other: Mapping[K, int]) -> None:
        """Add every count of *other* into this counter."""
        for key, amount in other.items():
            self.increment(key, amount)

    def count(self, key: K) -> int:
        return self._counts.get(key, 0)

    def most_common(self, limit: Optional[int] = None) -> List[Tuple[K, int]]:
        ranked = sorted_by_usage(self._counts)
        return ranked if limit is None else ranked[:limit]

    def as_dict(self) -> Dict[K, int]:
        return dict(self._counts)

    def __contains__(self, key: object) -> bool:
        return key in self._counts

    def __iter__(self) -> Iterator[K]:
        return iter(self._counts)

    def __len__(self) -> int:
        return len(self._counts)

    def __repr__(self) -> str:
        return f"UsageCounter({len(self._counts)} keys)"


class UsageTracker:
    """
    The six counters carried by an index draft.

    ``payee_accounts`` is nested (payee → account → count) and so is kept
    as a mapping of :class:`UsageCounter` objects.
    """

    def __init__(self) -> None:
        self.accounts: UsageCounter = UsageCounter()
        self.payees: UsageCounter = UsageCounter()
        self.tags: UsageCounter = UsageCounter()
        self.tag_values: UsageCounter = UsageCounter()
        self.commodities: UsageCounter = UsageCounter()
        self.payee_accounts: Dict[Hashable, UsageCounter] = {}

    def record_payee_account(self, payee: Hashable, account: Hashable) -> None:
        self.payee_accounts.setdefault(payee, UsageCounter()).increment(account)

    def merge_payee_accounts(self, other: Mapping[Hashable, Mapping[Hashable, int]]) -> None:
        for payee, counts in other.items():
            self.payee_accounts.setdefault(payee, UsageCounter()).merge(counts)
