"""
Error recovery for partial and malformed calculations.

The recovery layer guarantees that building a symbol tree never fails, turns
fallback regions into warnings, and decides which errors at the end of the
document are just text that is still being typed.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .parsing import CalcLexer
from .parsing.builder import DEFAULT_MAX_DEPTH, SymbolBuilder
from .types import RecoveryStats
from ..diagnostics.rules import meaningful
from ..lsp_data import (
    CalcDiagnostic,
    CalcDiagnosticSeverity,
    CalcSymbol,
    CalcSymbolKind,
    DiagnosticCategory,
    SymbolDetail,
)
from ..span import SpanBuilder, ZeroPosition

logger = logging.getLogger(__name__)

MAX_QUOTED_INPUT = 40


class TailState(Enum):
    """How the last construct of a document ends."""
    EMPTY = "empty"
    COMPLETE = "complete"
    DANGLING_OPERATOR = "dangling operator"
    INCOMPLETE_TOKEN = "incomplete token"
    OPEN_CONSTRUCT = "open construct"


IN_PROGRESS_STATES = frozenset({
    TailState.DANGLING_OPERATOR,
    TailState.INCOMPLETE_TOKEN,
    TailState.OPEN_CONSTRUCT,
})


@dataclass(frozen=True)
class TailContext:
    """Tail classification plus the position where the last symbol ends."""
    state: TailState
    end: Optional[ZeroPosition] = None

    @property
    def in_progress(self) -> bool:
        return self.state in IN_PROGRESS_STATES


@dataclass
class BuildResult:
    """Symbols built for a text region."""
    symbols: List[CalcSymbol]
    truncated: bool = False
    failed: bool = False


class ErrorRecovery:
    """Fault tolerant wrapper around the lexer and symbol builder."""

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        self.max_depth = max_depth

    def build(self, content: str, start: int = 0, end: Optional[int] = None) -> BuildResult:
        """
        Build the symbols for ``content[start:end]``.

        Args:
            content: Full document text
            start: Offset where the region starts
            end: Offset where the region ends, or None for the end of text

        Returns:
            BuildResult, with a single fallback symbol if building failed
        """
        lexer = CalcLexer(content, start, end)
        try:
            tokens = lexer.tokenize()
            symbols = SymbolBuilder(tokens, content, self.max_depth).build()
            return BuildResult(symbols, lexer.truncated)
        except Exception:
            logger.exception("Symbol building failed, falling back to an unrecognized region")
            return BuildResult(self._region_fallback(content, start, end), failed=True)

    def _region_fallback(self, content: str, start: int, end: Optional[int]) -> List[CalcSymbol]:
        end = len(content) if end is None else end
        text = content[start:end]
        stripped = text.strip()
        if not stripped:
            return []

        first = start + (len(text) - len(text.lstrip()))
        last = first + len(stripped)
        builder = SpanBuilder(content)
        return [CalcSymbol(
            name=stripped,
            kind=CalcSymbolKind.EXPRESSION,
            range=builder.range_from_offsets(first, last),
            raw_text=stripped,
            detail=SymbolDetail.UNRECOGNIZED
        )]

    def fallback_diagnostics(self, top: CalcSymbol) -> List[CalcDiagnostic]:
        """One warning for every fallback symbol in a subtree."""
        warnings = []
        for symbol in top.walk():
            if not symbol.is_fallback:
                continue

            if symbol.detail == SymbolDetail.TOO_DEEP:
                message = (f"Expression is nested more than {self.max_depth} levels deep "
                           "and was not analyzed.")
            else:
                quoted = " ".join(symbol.name.split())
                if len(quoted) > MAX_QUOTED_INPUT:
                    quoted = quoted[:MAX_QUOTED_INPUT - 3] + "..."
                message = f"Unrecognized input '{quoted}' was skipped."

            warnings.append(CalcDiagnostic(
                range=symbol.range,
                message=message,
                severity=CalcDiagnosticSeverity.WARNING,
                category=DiagnosticCategory.UNRECOGNIZED_INPUT,
                code="recovery",
                data={'fallback': True}
            ))
        return warnings

    def tail_context(self, symbols: List[CalcSymbol]) -> TailContext:
        """Classify how the last top-level construct ends."""
        items = meaningful(symbols)
        if not items:
            return TailContext(TailState.EMPTY)
        last = items[-1]
        return TailContext(self._tail_state(last), last.range.end)

    def _tail_state(self, symbol: CalcSymbol) -> TailState:
        node = symbol
        while True:
            if node.kind == CalcSymbolKind.OPERATOR:
                return TailState.DANGLING_OPERATOR
            if node.incomplete:
                return TailState.INCOMPLETE_TOKEN
            if node.is_fallback:
                return TailState.COMPLETE
            if node.detail == SymbolDetail.OPERAND:
                items = meaningful(node.children)
                if not items:
                    return TailState.OPEN_CONSTRUCT
                node = items[-1]
                continue
            if node.is_container and not node.is_closed:
                last_part = self._last_part(node)
                if last_part is None:
                    return TailState.OPEN_CONSTRUCT
                node = last_part
                continue
            return TailState.COMPLETE

    def _last_part(self, node: CalcSymbol) -> Optional[CalcSymbol]:
        """The part of an open container that text is being added to, or None if it is empty."""
        if node.detail == SymbolDetail.CONDITIONAL:
            if not node.children:
                return None
            branch = node.children[-1]
            if branch.name in ('ELSEIF', 'WHEN'):
                if not branch.children:
                    return None
                branch = branch.children[-1]
            body = meaningful(branch.children)
            return body[-1] if body else None

        if node.detail in (SymbolDetail.CALL, SymbolDetail.GROUP):
            operands = node.arguments if node.detail == SymbolDetail.CALL else node.children
            return operands[-1] if operands else None

        body = meaningful(node.children)
        return body[-1] if body else None

    def classify(self, diagnostics: List[CalcDiagnostic],
                 tail: TailContext) -> Tuple[List[CalcDiagnostic], RecoveryStats]:
        """
        Apply recovery classification to raw diagnostics.

        Errors reaching the end of the document are downgraded to Information
        when the document looks like it is still being typed. Otherwise an
        unclosed delimiter or LOD at the end becomes a Warning. Everything
        else keeps its severity.

        Args:
            diagnostics: Raw diagnostics of the whole document
            tail: Tail classification of the document

        Returns:
            Classified diagnostics and recovery counters
        """
        classified = []
        detected = 0
        recovered = 0

        for diagnostic in diagnostics:
            if diagnostic.category == DiagnosticCategory.UNRECOGNIZED_INPUT:
                detected += 1
                recovered += 1
                classified.append(diagnostic)
                continue

            if diagnostic.severity != CalcDiagnosticSeverity.ERROR:
                classified.append(diagnostic)
                continue

            detected += 1
            at_end = tail.end is not None and diagnostic.range.end >= tail.end
            message = diagnostic.guidance or diagnostic.message

            if at_end and tail.in_progress:
                classified.append(diagnostic.downgraded(CalcDiagnosticSeverity.INFORMATION, message))
                recovered += 1
            elif at_end and diagnostic.data.get('closable'):
                classified.append(diagnostic.downgraded(CalcDiagnosticSeverity.WARNING, message))
                recovered += 1
            else:
                classified.append(diagnostic)

        return classified, RecoveryStats(errors_detected=detected, errors_recovered=recovered)


# Export main classes
__all__ = [
    "TailState",
    "TailContext",
    "BuildResult",
    "ErrorRecovery",
]
