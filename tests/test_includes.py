"""
Tests for include resolution:

  IncludeResolver  – path handling, depth limit, cycles, globs
  LedgerParser     – included facts merged into the including file's index
"""
from __future__ import annotations

import logging
import textwrap
from pathlib import Path

import pytest

from ledger_index.config import ParserConfig
from ledger_index.passes.include_processor import IncludeResolver
from ledger_index.pipeline.ledger_parser import LedgerParser

FIXTURES = Path(__file__).parent / "fixtures"


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


# ─────────────────────────────────────────────────────────────────────────────
# IncludeResolver.candidate_paths
# ─────────────────────────────────────────────────────────────────────────────


class TestCandidatePaths:
    def test_relative_to_base_dir(self, tmp_path):
        assert IncludeResolver.candidate_paths("a.journal", tmp_path) == [tmp_path / "a.journal"]

    def test_absolute_path_kept(self, tmp_path):
        target = tmp_path / "abs.journal"
        assert IncludeResolver.candidate_paths(str(target), Path("/elsewhere")) == [target]

    def test_quotes_stripped(self, tmp_path):
        assert IncludeResolver.candidate_paths('"my file.journal"', tmp_path) == [
            tmp_path / "my file.journal"
        ]

    @pytest.mark.parametrize("prefix", ["journal:", "timedot:", "ledger:"])
    def test_reader_prefix_stripped(self, tmp_path, prefix):
        assert IncludeResolver.candidate_paths(prefix + "x.journal", tmp_path) == [
            tmp_path / "x.journal"
        ]

    def test_home_expanded(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert IncludeResolver.candidate_paths("~/books.journal", None) == [
            tmp_path / "books.journal"
        ]

    def test_no_base_dir_uses_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert IncludeResolver.candidate_paths("x.journal", None) == [Path.cwd() / "x.journal"]

    def test_glob_sorted_and_files_only(self, tmp_path):
        _write(tmp_path / "b.journal", "")
        _write(tmp_path / "a.journal", "")
        (tmp_path / "dir.journal").mkdir()
        assert IncludeResolver.candidate_paths("*.journal", tmp_path) == [
            tmp_path / "a.journal",
            tmp_path / "b.journal",
        ]

    def test_empty_argument(self, tmp_path):
        assert IncludeResolver.candidate_paths('  ""  ', tmp_path) == []


# ─────────────────────────────────────────────────────────────────────────────
# IncludeResolver.resolve with a stub parse callback
# ─────────────────────────────────────────────────────────────────────────────


class TestIncludeResolver:
    def test_depth_limit_skips(self, tmp_path, caplog):
        calls = []
        resolver = IncludeResolver(lambda p, d, s: calls.append(p), max_depth=2)
        with caplog.at_level(logging.WARNING):
            assert resolver.resolve("a.journal", tmp_path, depth=2) is None
        assert calls == []
        assert "depth limit" in caplog.text

    def test_callback_receives_depth_and_stack(self, tmp_path):
        calls = []

        def parse(path, depth, stack):
            calls.append((path, depth, stack))
            return None

        resolver = IncludeResolver(parse)
        outer = tmp_path / "outer.journal"
        resolver.resolve("inner.journal", tmp_path, depth=3, stack=(outer,))
        inner = (tmp_path / "inner.journal").resolve()
        assert calls == [(inner, 4, (outer, inner))]

    def test_cycle_skipped_but_edge_reported(self, tmp_path):
        edges = []
        current = (tmp_path / "self.journal").resolve()
        resolver = IncludeResolver(
            lambda p, d, s: pytest.fail("cyclic include must not be parsed"),
            on_include=lambda src, dest: edges.append((src, dest)),
        )
        assert resolver.resolve("self.journal", tmp_path, 0, (current,)) is None
        assert edges == [(current, current)]


# ─────────────────────────────────────────────────────────────────────────────
# LedgerParser include handling
# ─────────────────────────────────────────────────────────────────────────────


class TestParserIncludes:
    @pytest.fixture
    def parser(self):
        return LedgerParser()

    def test_fixture_journal(self, parser):
        index = parser.parse_file(FIXTURES / "main.journal")
        assert index.defined_accounts == {
            "Assets:Bank:Checking",
            "Expenses:Food:Groceries",
            "Expenses:Rent",
            "Expenses:Travel",
        }
        assert index.commodities == {"$", "EUR", "GBP"}
        assert index.tag_values["type"] == {"X"}
        assert index.payee_usage["Landlord"] == 2

    def test_fixture_include_graph(self, parser):
        parser.parse_file(FIXTURES / "main.journal")
        main = str((FIXTURES / "main.journal").resolve())
        assert parser.include_graph.direct_includes(main) == {
            str((FIXTURES / "accounts.journal").resolve()),
            str((FIXTURES / "prices" / "2023.journal").resolve()),
            str((FIXTURES / "prices" / "2024.journal").resolve()),
        }

    def test_relative_include(self, parser, tmp_path):
        _write(tmp_path / "sub" / "accounts.journal", "account Assets:Sub\n")
        main = _write(tmp_path / "main.journal", "include sub/accounts.journal\n")
        assert parser.parse_file(main).accounts == {"Assets:Sub"}

    def test_included_decimal_mark_applies_in_line_order(self, parser, tmp_path):
        _write(tmp_path / "sub.journal", "decimal-mark .\n")
        main = _write(tmp_path / "main.journal", """\
            decimal-mark ,
            include sub.journal
            """)
        assert parser.parse_file(main).decimal_mark == "."

    def test_decimal_mark_after_include_wins(self, parser, tmp_path):
        _write(tmp_path / "sub.journal", "decimal-mark .\n")
        main = _write(tmp_path / "main.journal", """\
            include sub.journal
            decimal-mark ,  ; local override
            """)
        assert parser.parse_file(main).decimal_mark == ","

    def test_nested_include_relative_to_includer(self, parser, tmp_path):
        _write(tmp_path / "sub" / "leaf.journal", "account Assets:Leaf\n")
        _write(tmp_path / "sub" / "mid.journal", "include leaf.journal\n")
        main = _write(tmp_path / "main.journal", "include sub/mid.journal\n")
        assert parser.parse_file(main).accounts == {"Assets:Leaf"}

    def test_missing_include_skipped(self, parser, tmp_path, caplog):
        main = _write(tmp_path / "main.journal", """\
            include nowhere.journal
            account Assets:Here
            """)
        with caplog.at_level(logging.WARNING):
            index = parser.parse_file(main)
        assert index.accounts == {"Assets:Here"}
        assert "nowhere.journal" in caplog.text

    def test_directory_include_skipped(self, parser, tmp_path):
        (tmp_path / "folder").mkdir()
        main = _write(tmp_path / "main.journal", "include folder\naccount Assets:Here\n")
        assert parser.parse_file(main).accounts == {"Assets:Here"}

    def test_depth_chain(self, parser, tmp_path):
        for i in range(15):
            _write(
                tmp_path / f"a{i}.journal",
                f"account A{i}\ninclude a{i + 1}.journal\n",
            )
        index = parser.parse_file(tmp_path / "a0.journal")
        assert index.accounts == {f"A{i}" for i in range(11)}

    def test_configured_depth(self, tmp_path):
        for i in range(6):
            _write(tmp_path / f"a{i}.journal", f"account A{i}\ninclude a{i + 1}.journal\n")
        parser = LedgerParser(ParserConfig(max_include_depth=3))
        index = parser.parse_file(tmp_path / "a0.journal")
        assert index.accounts == {"A0", "A1", "A2", "A3"}

    def test_zero_depth_disables_includes(self, tmp_path):
        _write(tmp_path / "b.journal", "account B\n")
        main = _write(tmp_path / "a.journal", "account A\ninclude b.journal\n")
        index = LedgerParser(ParserConfig(max_include_depth=0)).parse_file(main)
        assert index.accounts == {"A"}

    def test_mutual_cycle_terminates(self, parser, tmp_path):
        a = _write(tmp_path / "a.journal", "account A\ninclude b.journal\n")
        _write(tmp_path / "b.journal", "account B\ninclude a.journal\n")
        index = parser.parse_file(a)
        assert index.accounts == {"A", "B"}
        assert index.account_usage["A"] == 1
        cycles = parser.include_graph.cycles()
        assert len(cycles) == 1
        assert {Path(p).name for p in cycles[0]} == {"a.journal", "b.journal"}

    def test_self_include_terminates(self, parser, tmp_path):
        a = _write(tmp_path / "a.journal", "include a.journal\naccount A\n")
        assert parser.parse_file(a).accounts == {"A"}

    def test_glob_include(self, parser, tmp_path):
        _write(tmp_path / "2023.journal", "account Y2023\n")
        _write(tmp_path / "2024.journal", "account Y2024\n")
        main = _write(tmp_path / "main.ledger", "include *.journal\n")
        assert parser.parse_file(main).accounts == {"Y2023", "Y2024"}

    def test_prefixed_include(self, parser, tmp_path):
        _write(tmp_path / "other.journal", "account Other\n")
        main = _write(tmp_path / "main.journal", "include journal:other.journal\n")
        assert parser.parse_file(main).accounts == {"Other"}

    def test_oversized_include_skipped(self, tmp_path, caplog):
        _write(tmp_path / "big.journal", "account Big\n" + "; padding\n" * 200)
        main = _write(tmp_path / "main.journal", "account Small\ninclude big.journal\n")
        parser = LedgerParser(ParserConfig(max_file_size=500))
        with caplog.at_level(logging.WARNING):
            index = parser.parse_file(main)
        assert index.accounts == {"Small"}
        assert "Skipping include" in caplog.text

    def test_usage_summed_across_includes(self, parser, tmp_path):
        _write(tmp_path / "inc.journal", """\
            2024-01-01 Shop
                Expenses:Food  1 EUR
                Assets:Cash
            """)
        main = _write(tmp_path / "main.journal", """\
            include inc.journal
            2024-01-02 Shop
                Expenses:Food  2 EUR
                Assets:Cash
            """)
        index = parser.parse_file(main)
        assert index.payee_usage["Shop"] == 2
        assert index.account_usage["Expenses:Food"] == 2
        assert index.templates_for("Shop")[0].usage_count == 2
        assert index.last_date == "2024-01-02"

    def test_content_with_file_base_path(self, parser, tmp_path):
        _write(tmp_path / "inc.journal", "account Inc\n")
        index = parser.parse_content("include inc.journal\n", tmp_path / "unsaved.journal")
        assert index.accounts == {"Inc"}

    def test_content_with_directory_base_path(self, parser, tmp_path):
        _write(tmp_path / "inc.journal", "account Inc\n")
        index = parser.parse_content("include inc.journal\n", tmp_path)
        assert index.accounts == {"Inc"}

    def test_content_without_base_path_uses_cwd(self, parser, tmp_path, monkeypatch):
        _write(tmp_path / "inc.journal", "account Inc\n")
        monkeypatch.chdir(tmp_path)
        assert parser.parse_content("include inc.journal\n").accounts == {"Inc"}
