"""
Tests for the symbol builder.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import pytest

from tableau_language_server.analysis.parsing import tokenize
from tableau_language_server.analysis.parsing.builder import (
    SymbolBuilder,
    build_symbols,
    field_name,
)
from tableau_language_server.lsp_data import CalcSymbolKind, SymbolDetail
from tableau_language_server.span import ZeroPosition


def build(text, **kwargs):
    return build_symbols(tokenize(text), text, **kwargs)


class TestConditionals:
    """Test IF and CASE blocks."""

    def test_if_block(self):
        """Test a complete IF block."""
        text = "IF [Sales] > 100 THEN 'High' ELSE 'Low' END"
        symbols = build(text)

        assert len(symbols) == 1
        block = symbols[0]
        assert block.kind == CalcSymbolKind.KEYWORD
        assert block.name == "IF"
        assert block.detail == SymbolDetail.CONDITIONAL
        assert block.is_closed
        assert block.raw_text == text
        assert block.range.start == ZeroPosition(0, 0)
        assert block.range.end == ZeroPosition(0, len(text))

        condition = block.arguments[0]
        assert condition.detail == SymbolDetail.OPERAND
        assert condition.name == "[Sales] > 100"
        assert [c.kind for c in condition.children] == [
            CalcSymbolKind.FIELD_REFERENCE,
            CalcSymbolKind.OPERATOR,
            CalcSymbolKind.CONSTANT,
        ]

        assert [b.name for b in block.children] == ["THEN", "ELSE"]
        assert block.children[0].children[0].name == "'High'"
        assert block.terminator.name == "END"

    def test_case_block(self):
        """Test that THEN bodies attach to their WHEN branch."""
        text = "CASE [Region] WHEN 'East' THEN 1 WHEN 'West' THEN 2 ELSE 0 END"
        block = build(text)[0]

        assert block.name == "CASE"
        assert block.arguments[0].kind == CalcSymbolKind.FIELD_REFERENCE
        assert [b.name for b in block.children] == ["WHEN", "WHEN", "ELSE"]

        first_when = block.children[0]
        assert first_when.arguments[0].name == "'East'"
        assert first_when.children[0].name == "THEN"
        assert first_when.children[0].children[0].name == "1"
        assert first_when.range.end == first_when.children[0].range.end

    def test_branches_keep_source_order(self):
        """Test that misplaced branches are still attached."""
        block = build("IF [a] THEN 1 ELSE 2 ELSEIF [b] THEN 3 END")[0]
        assert [b.name for b in block.children] == ["THEN", "ELSE", "ELSEIF"]
        assert block.children[2].children[0].name == "THEN"
        assert block.is_closed

    def test_unclosed_if(self):
        """Test an IF block without END."""
        block = build("IF [Sales] > 1000 THEN \"High\"")[0]
        assert not block.is_closed
        assert block.terminator is None
        assert block.children[0].children[0].name == '"High"'

    def test_multiline_ranges(self):
        """Test ranges of a block spanning several lines."""
        text = "IF [a] THEN\n    1\nELSE\n    0\nEND"
        block = build(text)[0]
        assert block.range.start == ZeroPosition(0, 0)
        assert block.range.end == ZeroPosition(4, 3)
        assert block.children[1].range.start == ZeroPosition(2, 0)


class TestCallsAndGroups:
    """Test function calls and parenthesized groups."""

    def test_function_call(self):
        """Test a call with two arguments."""
        call = build("round([Profit], 2)")[0]
        assert call.kind == CalcSymbolKind.FUNCTION_CALL
        assert call.name == "ROUND"
        assert call.is_closed
        assert [a.kind for a in call.arguments] == [
            CalcSymbolKind.FIELD_REFERENCE,
            CalcSymbolKind.CONSTANT,
        ]
        assert call.arguments[0].name == "Profit"

    def test_nested_commas(self):
        """Test that commas inside nested calls do not split outer arguments."""
        call = build("MAX(LEFT([a], 2), 1)")[0]
        assert len(call.arguments) == 2
        assert call.arguments[0].name == "LEFT"
        assert len(call.arguments[0].arguments) == 2

    def test_empty_call(self):
        """Test a call without arguments."""
        call = build("TODAY()")[0]
        assert call.arguments == []
        assert call.is_closed

    def test_empty_argument(self):
        """Test that an empty argument slot is kept."""
        call = build("IIF([a], , 1)")[0]
        assert len(call.arguments) == 3
        assert call.arguments[1].detail == SymbolDetail.OPERAND
        assert call.arguments[1].name == ""
        assert call.arguments[1].range.is_empty

    def test_unclosed_call(self):
        """Test a call missing its closing parenthesis."""
        call = build("SUM([Sales]")[0]
        assert not call.is_closed
        assert len(call.arguments) == 1

    def test_group(self):
        """Test a parenthesized group followed by more operands."""
        symbols = build("(1 + 2) * 3")
        assert [s.kind for s in symbols] == [
            CalcSymbolKind.EXPRESSION,
            CalcSymbolKind.OPERATOR,
            CalcSymbolKind.CONSTANT,
        ]
        group = symbols[0]
        assert group.detail == SymbolDetail.GROUP
        assert group.name == "(1 + 2)"
        assert group.children[0].name == "1 + 2"


class TestLodExpressions:
    """Test level of detail expressions."""

    def test_fixed_lod(self):
        """Test a complete FIXED expression."""
        lod = build("{FIXED [Customer] : SUM([Sales])}")[0]
        assert lod.kind == CalcSymbolKind.LOD_EXPRESSION
        assert lod.name == "FIXED"
        assert [a.name for a in lod.arguments] == ["Customer"]
        assert lod.separator.name == ":"
        assert lod.children[0].name == "SUM"
        assert lod.is_closed

    def test_multiple_dimensions(self):
        """Test an LOD with several dimensions."""
        lod = build("{INCLUDE [Region], [State] : AVG([Profit])}")[0]
        assert lod.name == "INCLUDE"
        assert [a.name for a in lod.arguments] == ["Region", "State"]

    def test_table_scoped_lod(self):
        """Test braces around a single aggregate."""
        lod = build("{SUM([Sales])}")[0]
        assert lod.name == "LOD"
        assert lod.separator is None
        assert lod.arguments == []
        assert lod.children[0].name == "SUM"

    def test_unclosed_lod(self):
        """Test an LOD missing its closing brace."""
        lod = build("{FIXED [Customer] : SUM([Sales]")[0]
        assert not lod.is_closed
        assert not lod.children[0].is_closed


class TestFallbacks:
    """Test input that cannot be parsed normally."""

    def test_stray_keyword(self):
        """Test that a branch keyword outside a block becomes a fallback."""
        tokens = tokenize("THEN 1")
        builder = SymbolBuilder(tokens, "THEN 1")
        symbols = builder.build()

        assert symbols[0].detail == SymbolDetail.UNRECOGNIZED
        assert symbols[0].name == "THEN"
        assert symbols[1].kind == CalcSymbolKind.CONSTANT
        assert builder.fallbacks == [symbols[0]]

    def test_unknown_characters_merge(self):
        """Test that a run of unknown characters becomes one fallback."""
        symbols = build("@@ 1")
        assert symbols[0].detail == SymbolDetail.UNRECOGNIZED
        assert symbols[0].name == "@@"
        assert len(symbols) == 2

    def test_depth_limit(self):
        """Test that constructs beyond the depth limit are skipped."""
        symbols = build("((( 1 )))", max_depth=2)
        assert len(symbols) == 1
        too_deep = [s for s in symbols[0].walk() if s.detail == SymbolDetail.TOO_DEEP]
        assert len(too_deep) == 1
        assert too_deep[0].raw_text == "( 1 )"
        assert symbols[0].is_closed

    def test_requires_eof(self):
        """Test that a token stream without EOF is rejected."""
        with pytest.raises(ValueError):
            SymbolBuilder(tokenize("1")[:-1], "1")


class TestFieldNames:
    """Test field reference display names."""

    def test_plain(self):
        """Test a simple field."""
        assert field_name("[Sales]") == "Sales"

    def test_escaped_bracket(self):
        """Test an escaped closing bracket."""
        assert field_name("[A]]B]") == "A]B"

    def test_qualified(self):
        """Test a qualified parameter reference."""
        assert field_name("[Parameters].[Rate]") == "Parameters.Rate"

    def test_incomplete(self):
        """Test a reference without its closing bracket."""
        assert field_name("[Sal") == "Sal"
