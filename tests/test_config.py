"""
Tests for ParserConfig, parse-mode selection and the usage counters.
"""
from __future__ import annotations

import dataclasses

import pytest

from ledger_index.config import (
    DEFAULT_FILE_EXTENSIONS,
    PARSE_MODE_CHUNKED,
    PARSE_MODE_SYNC,
    ParserConfig,
    select_parse_mode,
)
from ledger_index.usage import (
    USAGE_COUNT_CEILING,
    UsageCounter,
    UsageTracker,
    saturating_add,
    sorted_by_usage,
)


# ─────────────────────────────────────────────────────────────────────────────
# ParserConfig
# ─────────────────────────────────────────────────────────────────────────────


class TestParserConfig:
    def test_defaults(self):
        config = ParserConfig()
        assert config.max_include_depth == 10
        assert config.async_threshold == 1024 * 1024
        assert config.chunk_size == 1000
        assert config.max_file_size is None
        assert config.batch_size == 3
        assert config.max_templates_per_payee == 5
        assert config.file_extensions == DEFAULT_FILE_EXTENSIONS
        assert "node_modules" in config.skip_dirs

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            ParserConfig().chunk_size = 5

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"chunk_size": 0},
            {"batch_size": 0},
            {"async_threshold": 0},
            {"max_templates_per_payee": 0},
            {"max_include_depth": -1},
            {"max_file_size": -1},
        ],
    )
    def test_validation(self, kwargs):
        with pytest.raises(ValueError):
            ParserConfig(**kwargs)

    def test_from_mapping_ignores_unknown_keys(self):
        config = ParserConfig.from_mapping({"chunk_size": 50, "colour": "blue"})
        assert config.chunk_size == 50

    def test_from_mapping_normalises_collections(self):
        config = ParserConfig.from_mapping(
            {"file_extensions": ["journal", ".j"], "skip_dirs": ["vendor"]}
        )
        assert config.file_extensions == (".journal", ".j")
        assert config.skip_dirs == frozenset({"vendor"})

    def test_from_mapping_validates(self):
        with pytest.raises(ValueError):
            ParserConfig.from_mapping({"batch_size": 0})


class TestSelectParseMode:
    @pytest.mark.parametrize(
        "size, expected",
        [
            (0, PARSE_MODE_SYNC),
            (1024 * 1024, PARSE_MODE_SYNC),
            (1024 * 1024 + 1, PARSE_MODE_CHUNKED),
        ],
    )
    def test_default_threshold(self, size, expected):
        assert select_parse_mode(ParserConfig(), size) == expected

    def test_custom_threshold(self):
        assert select_parse_mode(ParserConfig(async_threshold=10), 11) == PARSE_MODE_CHUNKED


# ─────────────────────────────────────────────────────────────────────────────
# Usage counters
# ─────────────────────────────────────────────────────────────────────────────


class TestUsageCounter:
    def test_increment_and_count(self):
        counter = UsageCounter()
        counter.increment("A")
        counter.increment("A", 2)
        assert counter.count("A") == 3
        assert counter.count("B") == 0
        assert "A" in counter and "B" not in counter

    def test_never_decreases(self):
        with pytest.raises(ValueError):
            UsageCounter().increment("A", -1)

    def test_saturates(self):
        counter = UsageCounter({"A": USAGE_COUNT_CEILING})
        counter.increment("A")
        assert counter.count("A") == USAGE_COUNT_CEILING
        assert saturating_add(USAGE_COUNT_CEILING - 1, 5) == USAGE_COUNT_CEILING

    def test_merge(self):
        counter = UsageCounter({"A": 1})
        counter.merge({"A": 2, "B": 1})
        assert counter.as_dict() == {"A": 3, "B": 1}

    def test_most_common_ties_sorted_by_name(self):
        counter = UsageCounter({"b": 2, "a": 2, "c": 5})
        assert counter.most_common() == [("c", 5), ("a", 2), ("b", 2)]
        assert counter.most_common(1) == [("c", 5)]

    def test_as_dict_is_a_copy(self):
        counter = UsageCounter({"A": 1})
        snapshot = counter.as_dict()
        counter.increment("A")
        assert snapshot == {"A": 1}

    def test_iteration(self):
        counter = UsageCounter({"A": 1, "B": 1})
        assert sorted(counter) == ["A", "B"]
        assert len(counter) == 2

    def test_sorted_by_usage_tuple_keys(self):
        assert sorted_by_usage({("t", "v"): 1, ("s", "v"): 1}) == [
            (("s", "v"), 1),
            (("t", "v"), 1),
        ]


class TestUsageTracker:
    def test_payee_accounts(self):
        tracker = UsageTracker()
        tracker.record_payee_account("Shop", "Expenses:Food")
        tracker.record_payee_account("Shop", "Expenses:Food")
        tracker.merge_payee_accounts({"Shop": {"Assets:Cash": 1}, "Bank": {"Fees": 2}})
        assert tracker.payee_accounts["Shop"].as_dict() == {
            "Expenses:Food": 2,
            "Assets:Cash": 1,
        }
        assert tracker.payee_accounts["Bank"].count("Fees") == 2
