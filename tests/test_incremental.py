"""
Tests for the incremental re-parse controller.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

from tableau_language_server.analysis import DocumentAnalyzer
from tableau_language_server.analysis.incremental import (
    DocumentState,
    ParseMode,
    ReparseController,
    changed_lines,
)
from tableau_language_server.config import Config
from tableau_language_server.lsp_data import CalcSymbolKind, DiagnosticCategory
from tableau_language_server.signatures import FunctionSignatureTable
from tableau_language_server.span import ZeroPosition

from conftest import sample_calculation

DOC = "file:///calc.twbl"


def replace_line(text, index, new_line):
    lines = text.split("\n")
    lines[index] = new_line
    return "\n".join(lines)


def insert_line(text, index, new_line):
    lines = text.split("\n")
    lines.insert(index, new_line)
    return "\n".join(lines)


def delete_line(text, index):
    lines = text.split("\n")
    del lines[index]
    return "\n".join(lines)


def full_parse(text, version):
    return DocumentAnalyzer().analyze(DOC, text, version)


class TestChangedLines:
    """Test the line diff used to plan a re-parse."""

    def test_single_change(self):
        """Test one changed line in the middle."""
        assert changed_lines(["a", "b", "c"], ["a", "x", "c"]) == (1, 1)

    def test_prefix_and_suffix_do_not_overlap(self):
        """Test repeated lines do not produce overlapping matches."""
        assert changed_lines(["a", "a"], ["a"]) == (1, 0)
        assert changed_lines(["a"], ["a", "a"]) == (1, 0)

    def test_identical(self):
        """Test identical line lists."""
        assert changed_lines(["a", "b"], ["a", "b"]) == (2, 0)


class TestIncrementalParsing:
    """Test region re-parsing against full parses."""

    def test_first_parse_is_full(self, controller, calculation):
        """Test that an uncached document is parsed in full."""
        parsed = controller.parse(DOC, calculation, 1)
        assert controller.last_parse_mode == ParseMode.FULL
        assert parsed == full_parse(calculation, 1)
        assert controller.get_document_state(DOC) == DocumentState.CACHED

    def test_single_line_edit(self, controller, calculation):
        """Test that a one-line edit re-parses a region only."""
        controller.parse(DOC, calculation, 1)
        edited = replace_line(calculation, 20, "    SUM([Profit], 1) * 3")

        parsed = controller.parse(DOC, edited, 2)

        assert controller.last_parse_mode == ParseMode.INCREMENTAL
        assert parsed == full_parse(edited, 2)
        assert [d.category for d in parsed.errors] == [DiagnosticCategory.ARGUMENT_COUNT]
        assert parsed.errors[0].range.start.line == 20

    def test_inserted_line_shifts_suffix(self, controller, calculation):
        """Test that symbols after an inserted line move down."""
        controller.parse(DOC, calculation, 1)
        edited = insert_line(calculation, 21, "    + RIGHT([Name])")

        parsed = controller.parse(DOC, edited, 2)

        assert controller.last_parse_mode == ParseMode.INCREMENTAL
        assert parsed == full_parse(edited, 2)
        assert parsed.symbols[-1].name == "AVG"
        assert parsed.symbols[-1].range.start.line == 49

    def test_deleted_line_shifts_suffix_up(self, controller, calculation):
        """Test that removing a line inside a block moves later symbols up."""
        controller.parse(DOC, calculation, 1)
        edited = delete_line(calculation, 20)

        parsed = controller.parse(DOC, edited, 2)

        assert controller.last_parse_mode == ParseMode.INCREMENTAL
        assert parsed == full_parse(edited, 2)
        assert [d.category for d in parsed.warnings] == [DiagnosticCategory.EMPTY_BRANCH]

    def test_region_ending_inside_construct(self, controller, calculation):
        """Test that removing an END falls back to a full parse."""
        controller.parse(DOC, calculation, 1)
        edited = delete_line(calculation, 23)

        parsed = controller.parse(DOC, edited, 2)

        assert controller.last_parse_mode == ParseMode.FULL
        assert parsed == full_parse(edited, 2)

    def test_unterminated_comment_crossing_region(self, controller, calculation):
        """Test that a token crossing the region end forces a full parse."""
        controller.parse(DOC, calculation, 1)
        edited = replace_line(calculation, 18, "/* tier 3")

        parsed = controller.parse(DOC, edited, 2)

        assert controller.last_parse_mode == ParseMode.FULL
        assert parsed == full_parse(edited, 2)

    def test_large_change(self, controller, calculation):
        """Test that changing many lines triggers a full parse."""
        controller.parse(DOC, calculation, 1)
        edited = calculation.replace("SUM([Profit])", "AVG([Profit])")

        parsed = controller.parse(DOC, edited, 2)

        assert controller.last_parse_mode == ParseMode.FULL
        assert parsed == full_parse(edited, 2)

    def test_small_document(self, controller):
        """Test that short documents are always parsed in full."""
        text = sample_calculation(2)
        controller.parse(DOC, text, 1)
        controller.parse(DOC, replace_line(text, 2, "    SUM([Profit]) * 5"), 2)
        assert controller.last_parse_mode == ParseMode.FULL

    def test_sequence_of_edits(self, controller, calculation):
        """Test that repeated edits stay equal to full parses."""
        text = calculation
        controller.parse(DOC, text, 1)
        edits = [
            lambda t: replace_line(t, 8, "    COUNT([Orders]) * 1"),
            lambda t: insert_line(t, 30, "    + 1"),
            lambda t: replace_line(t, 45, "    IIF([a], 1)"),
            lambda t: delete_line(t, 31),
        ]
        for version, edit in enumerate(edits, start=2):
            text = edit(text)
            parsed = controller.parse(DOC, text, version)
            assert parsed == full_parse(text, version)

    def test_previous_entry_of_other_document(self, controller, calculation):
        """Test that a foreign base entry is ignored."""
        controller.parse("file:///other.twbl", calculation, 1)
        other = controller.cache.peek("file:///other.twbl")

        edited = replace_line(calculation, 20, "    SUM([Profit]) * 30")
        parsed = controller.parse(DOC, edited, 1, previous_entry=other)

        assert controller.last_parse_mode == ParseMode.FULL
        assert parsed == full_parse(edited, 1)


class TestVersions:
    """Test cache reuse and version handling."""

    def test_unchanged_text(self, controller, calculation):
        """Test a new version with identical text."""
        first = controller.parse(DOC, calculation, 1)
        second = controller.parse(DOC, calculation, 2)

        assert controller.last_parse_mode == ParseMode.UNCHANGED
        assert second.version == 2
        assert second.symbols == first.symbols
        assert controller.get_parsed_document(DOC).version == 2

    def test_cached_result(self, controller, calculation):
        """Test that the same version returns the cached object."""
        first = controller.parse(DOC, calculation, 1)
        second = controller.parse(DOC, calculation, 1)

        assert controller.last_parse_mode == ParseMode.CACHED
        assert second is first
        assert controller.get_cache_stats()["cache_hits"] == 1

    def test_stale_version(self, controller, calculation):
        """Test that an older version is analyzed but never cached."""
        controller.parse(DOC, calculation, 5)
        edited = replace_line(calculation, 20, "    SUM([Profit]) * 30")

        stale = controller.parse(DOC, edited, 3)

        assert stale.version == 3
        assert stale == full_parse(edited, 3)
        assert controller.get_parsed_document(DOC).version == 5
        assert controller.get_cache_stats()["stale_results"] == 1


class TestSignatureReload:
    """Test reloading the function signature table."""

    def test_reload_invalidates(self, controller, calculation):
        """Test that a reload forces a full parse of cached documents."""
        controller.parse(DOC, calculation, 1)
        controller.reload_signatures()
        assert controller.get_document_state(DOC) == DocumentState.INVALIDATED

        controller.parse(DOC, replace_line(calculation, 20, "    SUM([Profit]) * 30"), 2)

        assert controller.last_parse_mode == ParseMode.FULL
        assert controller.get_document_state(DOC) == DocumentState.CACHED
        assert controller.get_cache_stats()["invalidated_documents"] == 0

    def test_reload_applies_new_table(self, controller):
        """Test that the same version is re-checked with the new table."""
        controller.parse(DOC, "SUM([Sales])", 1)

        table = FunctionSignatureTable.from_dict({"AVG": [1, 1]}, include_builtins=False)
        controller.reload_signatures(table)
        parsed = controller.parse(DOC, "SUM([Sales])", 1)

        assert controller.last_parse_mode == ParseMode.FULL
        assert [d.message for d in parsed.warnings] == ["Unknown function: SUM"]
        assert parsed.warnings[0].suggestion is None


class TestListeners:
    """Test diagnostics listeners."""

    def test_listener_receives_reports(self, controller):
        """Test that every stored parse notifies listeners."""
        reports = []
        controller.add_diagnostics_listener(reports.append)

        controller.parse(DOC, "ROUD([Sales])", 1)

        assert len(reports) == 1
        assert reports[0].document_id == DOC
        assert reports[0].version == 1
        assert reports[0].diagnostics[0].message == "Unknown function: ROUD"

    def test_stale_results_are_not_published(self, controller):
        """Test that stale versions do not reach listeners."""
        controller.parse(DOC, "SUM([Sales])", 4)
        reports = []
        controller.add_diagnostics_listener(reports.append)

        controller.parse(DOC, "SUM([Sales]", 2)
        assert reports == []

    def test_failing_listener(self, controller, caplog):
        """Test that a failing listener does not break parsing."""
        def broken(report):
            raise RuntimeError("listener failed")

        reports = []
        controller.add_diagnostics_listener(broken)
        controller.add_diagnostics_listener(reports.append)

        parsed = controller.parse(DOC, "SUM([Sales])", 1)

        assert parsed.diagnostics == ()
        assert len(reports) == 1
        assert "Error in diagnostics listener" in caplog.text

    def test_remove_listener(self, controller):
        """Test removing a listener."""
        reports = []
        controller.add_diagnostics_listener(reports.append)
        controller.remove_diagnostics_listener(reports.append)
        controller.parse(DOC, "SUM([Sales])", 1)
        assert reports == []


class TestLookups:
    """Test symbol lookups on cached documents."""

    def test_symbols_at_line(self, controller, calculation):
        """Test finding symbols that start on a line."""
        controller.parse(DOC, calculation, 1)
        symbols = controller.get_symbols_at_line(DOC, 19)

        assert symbols[0].name == "IF"
        assert "Sales" in [s.name for s in symbols]
        assert controller.get_symbols_at_line(DOC, 500) == []

    def test_symbols_by_name(self, controller, calculation):
        """Test finding symbols by name, case-insensitively."""
        controller.parse(DOC, calculation, 1)

        assert len(controller.get_symbols_by_name(DOC, "sum")) == 8
        assert len(controller.get_symbols_by_name(DOC, "Sales")) == 8
        assert len(controller.get_symbols_by_name(DOC, "avg")) == 1

    def test_symbol_at_position(self, controller, calculation):
        """Test finding the innermost symbol at a position."""
        controller.parse(DOC, calculation, 1)

        symbol = controller.get_symbol_at_position(DOC, ZeroPosition(20, 10))
        assert symbol.kind == CalcSymbolKind.FIELD_REFERENCE
        assert symbol.name == "Profit"

        call = controller.get_symbol_at_position(DOC, ZeroPosition(20, 5))
        assert call.name == "SUM"

    def test_unknown_document(self, controller):
        """Test lookups on a document that was never parsed."""
        assert controller.get_symbols_at_line("file:///missing", 0) == []
        assert controller.get_symbols_by_name("file:///missing", "SUM") == []
        assert controller.get_symbol_at_position("file:///missing", ZeroPosition(0, 0)) is None
        assert controller.get_parsed_document("file:///missing") is None
        assert controller.get_document_state("file:///missing") == DocumentState.UNCACHED

    def test_lookup_after_incremental_parse(self, controller, calculation):
        """Test that lookups see shifted symbols after an edit."""
        controller.parse(DOC, calculation, 1)
        controller.get_symbols_at_line(DOC, 0)

        controller.parse(DOC, insert_line(calculation, 0, "// header"), 2)
        assert controller.get_symbols_at_line(DOC, 49)[0].name == "AVG"


class TestCacheControl:
    """Test invalidation, eviction and statistics."""

    def test_invalidate_document(self, controller, calculation):
        """Test dropping one document."""
        controller.parse(DOC, calculation, 1)
        controller.invalidate_document(DOC)
        assert controller.get_document_state(DOC) == DocumentState.UNCACHED

    def test_evict_all(self, controller):
        """Test dropping every document."""
        controller.parse("file:///a.twbl", "SUM([a])", 1)
        controller.parse("file:///b.twbl", "SUM([b])", 1)
        assert controller.evict_all() == 2
        assert controller.get_cache_stats()["cached_documents"] == 0

    def test_bounded_cache(self):
        """Test that the configured cache size is honoured."""
        config = Config()
        config.set_initialization_options({"incremental": {"max_cache_entries": 2}})
        controller = ReparseController(config)

        for name in ("a", "b", "c"):
            controller.parse(f"file:///{name}.twbl", "SUM([a])", 1)

        stats = controller.get_cache_stats()
        assert stats["cached_documents"] == 2
        assert stats["evictions"] == 1
        assert controller.get_document_state("file:///a.twbl") == DocumentState.UNCACHED

    def test_parse_statistics(self, controller, calculation):
        """Test parse counters."""
        controller.parse(DOC, calculation, 1)
        controller.parse(DOC, replace_line(calculation, 20, "    SUM([Profit]) * 30"), 2)

        stats = controller.get_cache_stats()
        assert stats["full_parses"] == 1
        assert stats["incremental_parses"] == 1
        assert stats["unchanged_parses"] == 0
