"""
Analysis module for the Tableau Language Server.

Runs the lexer, symbol builder, diagnostics engine and error recovery over a
calculation and produces an immutable ParsedDocument.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ..config import DiagnosticsConfig
from ..diagnostics import DiagnosticsEngine
from ..lsp_data import CalcDiagnostic, CalcSymbol
from ..signatures import FunctionSignatureTable
from .parsing.builder import DEFAULT_MAX_DEPTH
from .recovery import ErrorRecovery, TailContext
from .types import DiagnosticsReport, ParsedDocument, RecoveryStats

logger = logging.getLogger(__name__)

DEFAULT_MAX_DIAGNOSTICS = 100


@dataclass
class RegionAnalysis:
    """
    Symbols of a text region together with their own diagnostics.

    ``symbol_diagnostics[i]`` holds the raw diagnostics of ``symbols[i]`` and
    its subtree. They depend on nothing outside the symbol, so they stay valid
    for an unchanged symbol of a later version.
    """
    symbols: List[CalcSymbol] = field(default_factory=list)
    symbol_diagnostics: List[Tuple[CalcDiagnostic, ...]] = field(default_factory=list)
    truncated: bool = False


class DocumentAnalyzer:
    """Full analysis pipeline for calculation documents."""

    def __init__(self, signatures: Optional[FunctionSignatureTable] = None,
                 diagnostics_config: Optional[DiagnosticsConfig] = None,
                 max_nesting_depth: int = DEFAULT_MAX_DEPTH,
                 max_diagnostics: int = DEFAULT_MAX_DIAGNOSTICS):
        self.engine = DiagnosticsEngine(signatures, diagnostics_config)
        self.recovery = ErrorRecovery(max_nesting_depth)
        self.max_diagnostics = max_diagnostics

    @property
    def signatures(self) -> FunctionSignatureTable:
        return self.engine.signatures

    def set_signatures(self, signatures: FunctionSignatureTable) -> None:
        """Replace the function signature table used by later analyses."""
        self.engine.set_signatures(signatures)

    def analyze_region(self, content: str, start: int = 0, end: Optional[int] = None) -> RegionAnalysis:
        """
        Build and check the top-level symbols of ``content[start:end]``.

        Args:
            content: Full document text
            start: Offset of the first character of the region
            end: Offset after the region, or None for the end of the text

        Returns:
            RegionAnalysis with per-symbol raw diagnostics
        """
        result = self.recovery.build(content, start, end)

        symbol_diagnostics = []
        for symbol in result.symbols:
            raw = self.engine.check_symbol(symbol)
            raw.extend(self.recovery.fallback_diagnostics(symbol))
            symbol_diagnostics.append(tuple(raw))

        return RegionAnalysis(result.symbols, symbol_diagnostics, result.truncated)

    def finalize(self, document_id: str, version: int, symbols: Sequence[CalcSymbol],
                 symbol_diagnostics: Sequence[Sequence[CalcDiagnostic]]) -> ParsedDocument:
        """
        Turn a complete top-level symbol list into a ParsedDocument.

        Runs the document level rules and recovery classification, then sorts
        the diagnostics by position and applies the per-document cap.
        """
        symbols = list(symbols)
        raw: List[CalcDiagnostic] = []
        for group in symbol_diagnostics:
            raw.extend(group)
        raw.extend(self.engine.check_document(symbols))

        tail: TailContext = self.recovery.tail_context(symbols)
        diagnostics, stats = self.recovery.classify(raw, tail)
        diagnostics = self._limit(document_id, diagnostics)

        return ParsedDocument(
            document_id=document_id,
            version=version,
            symbols=tuple(symbols),
            diagnostics=tuple(diagnostics),
            recovery_stats=stats
        )

    def _limit(self, document_id: str, diagnostics: List[CalcDiagnostic]) -> List[CalcDiagnostic]:
        if len(diagnostics) > self.max_diagnostics:
            logger.debug(
                f"{document_id}: keeping {self.max_diagnostics} of {len(diagnostics)} diagnostics"
            )
            # Keep the most severe ones, then report them in document order
            diagnostics = sorted(diagnostics, key=lambda d: (d.severity.rank, d.sort_key()))
            diagnostics = diagnostics[:self.max_diagnostics]
        return sorted(diagnostics, key=lambda d: d.sort_key())

    def analyze(self, document_id: str, text: str, version: int = 0) -> ParsedDocument:
        """
        Analyze a whole document.

        Args:
            document_id: Identifier of the document (usually its URI)
            text: Full document text
            version: Document version

        Returns:
            ParsedDocument for this version
        """
        region = self.analyze_region(text)
        parsed = self.finalize(document_id, version, region.symbols, region.symbol_diagnostics)
        logger.debug(
            f"Analyzed {document_id} v{version}: {len(parsed.symbols)} symbols, "
            f"{len(parsed.diagnostics)} diagnostics"
        )
        return parsed


def analyze_text(text: str, signatures: Optional[FunctionSignatureTable] = None) -> ParsedDocument:
    """Analyze a standalone calculation with default settings."""
    return DocumentAnalyzer(signatures).analyze("untitled", text)


# Export main classes
__all__ = [
    "RegionAnalysis",
    "DocumentAnalyzer",
    "analyze_text",
    "ParsedDocument",
    "RecoveryStats",
    "DiagnosticsReport",
]
