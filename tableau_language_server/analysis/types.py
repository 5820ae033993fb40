"""
Result types of the analysis pipeline.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ..lsp_data import CalcDiagnostic, CalcDiagnosticSeverity, CalcSymbol


@dataclass(frozen=True)
class RecoveryStats:
    """Counters reported by the error recovery layer."""
    errors_detected: int = 0
    errors_recovered: int = 0


@dataclass(frozen=True)
class ParsedDocument:
    """The analysis result for one version of a document. Never mutated."""
    document_id: str
    version: int
    symbols: Tuple[CalcSymbol, ...]
    diagnostics: Tuple[CalcDiagnostic, ...]
    recovery_stats: RecoveryStats

    @property
    def errors(self) -> Tuple[CalcDiagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.severity == CalcDiagnosticSeverity.ERROR)

    @property
    def warnings(self) -> Tuple[CalcDiagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.severity == CalcDiagnosticSeverity.WARNING)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'document_id': self.document_id,
            'version': self.version,
            'symbol_count': len(self.symbols),
            'diagnostics': [d.to_dict() for d in self.diagnostics],
            'recovery_stats': {
                'errors_detected': self.recovery_stats.errors_detected,
                'errors_recovered': self.recovery_stats.errors_recovered,
            },
        }


@dataclass(frozen=True)
class DiagnosticsReport:
    """What the controller hands to diagnostics listeners after each parse."""
    document_id: str
    version: int
    diagnostics: Tuple[CalcDiagnostic, ...]


# Export main classes
__all__ = [
    "RecoveryStats",
    "ParsedDocument",
    "DiagnosticsReport",
]
