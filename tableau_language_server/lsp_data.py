"""
Symbol and diagnostic data structures for the Tableau Language Server.

These are the values produced by the analysis pipeline and handed to
consumers. Each type knows how to convert itself to its LSP counterpart.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

from typing import Any, Dict, Iterator, List, Optional
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from lsprotocol.types import (
    Position as LspPosition,
    Range as LspRange,
    Diagnostic as LspDiagnostic,
    DiagnosticSeverity,
    SymbolKind,
    DocumentSymbol as LspDocumentSymbol,
)

from .span import ZeroRange

SOURCE_NAME = "tableau-language-server"


class CalcDiagnosticSeverity(Enum):
    """Severity levels for calculation diagnostics."""
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    CalcDiagnosticSeverity.ERROR: 0,
    CalcDiagnosticSeverity.WARNING: 1,
    CalcDiagnosticSeverity.INFORMATION: 2,
}


class DiagnosticClass(Enum):
    """Top level error taxonomy."""
    STRUCTURAL = "structural"
    SEMANTIC = "semantic"
    ADVISORY = "advisory"
    RECOVERABLE = "recoverable"


class DiagnosticCategory(Enum):
    """Closed set of diagnostic categories."""
    UNCLOSED_BLOCK = "unclosed block"
    UNCLOSED_DELIMITER = "unclosed delimiter"
    BRANCH_ORDER = "branch order"
    MISSING_BRANCH = "missing branch"
    MISSING_CONDITION = "missing condition"
    INCOMPLETE_EXPRESSION = "incomplete expression"
    INCOMPLETE_TOKEN = "incomplete token"
    UNKNOWN_FUNCTION = "unknown function"
    ARGUMENT_COUNT = "argument count"
    MISSING_ELSE = "missing else"
    EMPTY_BRANCH = "empty branch"
    INCOMPLETE_LOD = "incomplete LOD"
    UNRECOGNIZED_INPUT = "unrecognized input"
    PERFORMANCE = "performance"
    EMPTY_DOCUMENT = "empty document"

    @property
    def diagnostic_class(self) -> DiagnosticClass:
        return _CATEGORY_CLASS[self]


_CATEGORY_CLASS = {
    DiagnosticCategory.UNCLOSED_BLOCK: DiagnosticClass.STRUCTURAL,
    DiagnosticCategory.UNCLOSED_DELIMITER: DiagnosticClass.RECOVERABLE,
    DiagnosticCategory.BRANCH_ORDER: DiagnosticClass.STRUCTURAL,
    DiagnosticCategory.MISSING_BRANCH: DiagnosticClass.STRUCTURAL,
    DiagnosticCategory.MISSING_CONDITION: DiagnosticClass.STRUCTURAL,
    DiagnosticCategory.INCOMPLETE_EXPRESSION: DiagnosticClass.RECOVERABLE,
    DiagnosticCategory.INCOMPLETE_TOKEN: DiagnosticClass.RECOVERABLE,
    DiagnosticCategory.UNKNOWN_FUNCTION: DiagnosticClass.SEMANTIC,
    DiagnosticCategory.ARGUMENT_COUNT: DiagnosticClass.SEMANTIC,
    DiagnosticCategory.MISSING_ELSE: DiagnosticClass.ADVISORY,
    DiagnosticCategory.EMPTY_BRANCH: DiagnosticClass.ADVISORY,
    DiagnosticCategory.INCOMPLETE_LOD: DiagnosticClass.SEMANTIC,
    DiagnosticCategory.UNRECOGNIZED_INPUT: DiagnosticClass.STRUCTURAL,
    DiagnosticCategory.PERFORMANCE: DiagnosticClass.ADVISORY,
    DiagnosticCategory.EMPTY_DOCUMENT: DiagnosticClass.ADVISORY,
}


def to_lsp_range(range_obj: ZeroRange) -> LspRange:
    """Convert a zero-indexed range to an LSP range (LSP is zero-based too)."""
    return LspRange(
        start=LspPosition(line=range_obj.start.line, character=range_obj.start.column),
        end=LspPosition(line=range_obj.end.line, character=range_obj.end.column)
    )


@dataclass(frozen=True)
class CalcDiagnostic:
    """A diagnostic message for a calculation."""
    range: ZeroRange
    message: str
    severity: CalcDiagnosticSeverity
    category: DiagnosticCategory
    code: Optional[str] = None
    source: str = SOURCE_NAME
    data: Dict[str, Any] = field(default_factory=dict)
    recovered: bool = False
    original_severity: Optional[CalcDiagnosticSeverity] = None

    @property
    def is_error(self) -> bool:
        return self.severity == CalcDiagnosticSeverity.ERROR

    @property
    def guidance(self) -> Optional[str]:
        return self.data.get('guidance')

    @property
    def suggestion(self) -> Optional[str]:
        return self.data.get('suggestion')

    def shifted(self, line_delta: int) -> 'CalcDiagnostic':
        """Return a copy moved by a number of whole lines."""
        if line_delta == 0:
            return self
        return replace(self, range=self.range.shifted(line_delta))

    def downgraded(self, severity: CalcDiagnosticSeverity, message: str) -> 'CalcDiagnostic':
        """Return a recovery-classified copy with a lower severity."""
        return replace(
            self,
            severity=severity,
            message=message,
            recovered=True,
            original_severity=self.severity
        )

    def sort_key(self):
        return (
            self.range.start.line, self.range.start.column,
            self.range.end.line, self.range.end.column,
            self.severity.rank, self.category.value, self.message
        )

    def to_lsp_diagnostic(self) -> LspDiagnostic:
        """Convert to LSP diagnostic."""
        severity_map = {
            CalcDiagnosticSeverity.ERROR: DiagnosticSeverity.Error,
            CalcDiagnosticSeverity.WARNING: DiagnosticSeverity.Warning,
            CalcDiagnosticSeverity.INFORMATION: DiagnosticSeverity.Information,
        }

        data = dict(self.data)
        data['category'] = self.category.value
        if self.recovered:
            data['recovered'] = True

        return LspDiagnostic(
            range=to_lsp_range(self.range),
            message=self.message,
            severity=severity_map[self.severity],
            code=self.code,
            source=self.source,
            data=data
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'range': str(self.range),
            'message': self.message,
            'severity': self.severity.value,
            'category': self.category.value,
            'code': self.code,
            'recovered': self.recovered,
        }


class CalcSymbolKind(Enum):
    """Kinds of calculation symbols."""
    KEYWORD = "keyword"
    FUNCTION_CALL = "function call"
    FIELD_REFERENCE = "field reference"
    OPERATOR = "operator"
    CONSTANT = "constant"
    LOD_EXPRESSION = "LOD expression"
    CALCULATION_NAME = "calculation name"
    COMMENT = "comment"
    EXPRESSION = "expression"


class SymbolDetail:
    """Construct tags stored in CalcSymbol.detail."""
    CONDITIONAL = "conditional"
    BRANCH = "branch"
    CALL = "call"
    GROUP = "group"
    OPERAND = "operand"
    LOD = "lod"
    UNRECOGNIZED = "unrecognized"
    TOO_DEEP = "too-deep"

    CONTAINERS = frozenset({CONDITIONAL, CALL, GROUP, LOD})
    FALLBACKS = frozenset({UNRECOGNIZED, TOO_DEEP})


@dataclass
class CalcSymbol:
    """
    A node of the calculation symbol tree.

    ``arguments``, ``separator`` and ``children`` are owned by this symbol.
    ``terminator`` references the closing symbol (END, ``)`` or ``}``), which
    lies inside this symbol's range but belongs to no list.
    """
    name: str
    kind: CalcSymbolKind
    range: ZeroRange
    children: List['CalcSymbol'] = field(default_factory=list)
    arguments: List['CalcSymbol'] = field(default_factory=list)
    separator: Optional['CalcSymbol'] = None
    terminator: Optional['CalcSymbol'] = None
    raw_text: Optional[str] = None
    detail: Optional[str] = None
    incomplete: bool = False

    @property
    def is_container(self) -> bool:
        return self.detail in SymbolDetail.CONTAINERS

    @property
    def is_closed(self) -> bool:
        return self.terminator is not None

    @property
    def is_fallback(self) -> bool:
        return self.detail in SymbolDetail.FALLBACKS

    def owned_parts(self) -> Iterator['CalcSymbol']:
        """Yield the owned sub-symbols in source order."""
        yield from self.arguments
        if self.separator is not None:
            yield self.separator
        yield from self.children

    def parts(self) -> Iterator['CalcSymbol']:
        """Yield owned sub-symbols followed by the terminator."""
        yield from self.owned_parts()
        if self.terminator is not None:
            yield self.terminator

    def walk(self) -> Iterator['CalcSymbol']:
        """Yield this symbol and every descendant in pre-order."""
        stack = [self]
        while stack:
            symbol = stack.pop()
            yield symbol
            stack.extend(reversed(list(symbol.parts())))

    def shifted(self, line_delta: int) -> 'CalcSymbol':
        """Return a deep copy moved by a number of whole lines."""
        return CalcSymbol(
            name=self.name,
            kind=self.kind,
            range=self.range.shifted(line_delta),
            children=[child.shifted(line_delta) for child in self.children],
            arguments=[arg.shifted(line_delta) for arg in self.arguments],
            separator=self.separator.shifted(line_delta) if self.separator else None,
            terminator=self.terminator.shifted(line_delta) if self.terminator else None,
            raw_text=self.raw_text,
            detail=self.detail,
            incomplete=self.incomplete
        )

    def to_lsp_document_symbol(self) -> LspDocumentSymbol:
        """Convert to LSP document symbol."""
        kind_map = {
            CalcSymbolKind.KEYWORD: SymbolKind.Key,
            CalcSymbolKind.FUNCTION_CALL: SymbolKind.Function,
            CalcSymbolKind.FIELD_REFERENCE: SymbolKind.Field,
            CalcSymbolKind.OPERATOR: SymbolKind.Operator,
            CalcSymbolKind.CONSTANT: SymbolKind.Constant,
            CalcSymbolKind.LOD_EXPRESSION: SymbolKind.Object,
            CalcSymbolKind.CALCULATION_NAME: SymbolKind.Variable,
            CalcSymbolKind.COMMENT: SymbolKind.String,
            CalcSymbolKind.EXPRESSION: SymbolKind.Array,
        }

        lsp_range = to_lsp_range(self.range)
        lsp_children = [
            part.to_lsp_document_symbol()
            for part in self.owned_parts()
            if part.kind != CalcSymbolKind.OPERATOR
        ]

        return LspDocumentSymbol(
            name=self.name or "(empty)",
            kind=kind_map[self.kind],
            range=lsp_range,
            selection_range=lsp_range,
            detail=self.detail,
            children=lsp_children if lsp_children else None
        )


def path_to_uri(path: Path) -> str:
    """Convert a file path to a URI."""
    return path.resolve().as_uri()


# Export main classes
__all__ = [
    "CalcDiagnosticSeverity",
    "DiagnosticClass",
    "DiagnosticCategory",
    "CalcDiagnostic",
    "CalcSymbolKind",
    "SymbolDetail",
    "CalcSymbol",
    "to_lsp_range",
    "path_to_uri",
    "SOURCE_NAME",
]
