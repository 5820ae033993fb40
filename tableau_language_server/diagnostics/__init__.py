"""
Diagnostics engine for the Tableau Language Server.

A pure function over symbol trees: every rule inspects the tree and reports
problems as data. Nothing here modifies symbols.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import logging
from typing import Any, Dict, List, Optional

from ..config import DiagnosticsConfig
from ..lsp_data import CalcDiagnostic, CalcDiagnosticSeverity, CalcSymbol, CalcSymbolKind
from ..signatures import FunctionSignatureTable
from .rules import (
    DiagnosticRule,
    DocumentRule,
    RuleContext,
    TreeRule,
    get_default_rules,
)

logger = logging.getLogger(__name__)


class DiagnosticsEngine:
    """Main diagnostics engine."""

    def __init__(self, signatures: Optional[FunctionSignatureTable] = None,
                 config: Optional[DiagnosticsConfig] = None):
        self.signatures = signatures or FunctionSignatureTable()
        self.config = config
        self.rules: List[DiagnosticRule] = []

        # Register default rules
        self._register_default_rules()

        # Apply configuration
        self._apply_config()

    def _register_default_rules(self) -> None:
        """Register default diagnostic rules."""
        self.rules = get_default_rules()
        self._index_rules()

    def _index_rules(self) -> None:
        self._node_rules: Dict[CalcSymbolKind, List[DiagnosticRule]] = {kind: [] for kind in CalcSymbolKind}
        self._tree_rules: List[TreeRule] = []
        self._document_rules: List[DocumentRule] = []

        for rule in self.rules:
            if not rule.enabled:
                continue
            if isinstance(rule, DocumentRule):
                self._document_rules.append(rule)
            elif isinstance(rule, TreeRule):
                self._tree_rules.append(rule)
            else:
                for kind in rule.kinds:
                    self._node_rules[kind].append(rule)

    def _apply_config(self) -> None:
        """Apply diagnostics configuration."""
        if not self.config:
            return

        # Enable/disable rules based on configuration
        for rule in self.rules:
            if rule.name in self.config.disabled_rules:
                rule.enabled = False
            elif rule.name in self.config.enabled_rules:
                rule.enabled = True

            # Apply rule-specific configuration
            if rule.name in self.config.rule_configs:
                self._apply_rule_config(rule, self.config.rule_configs[rule.name])

        self._index_rules()

    def _apply_rule_config(self, rule: DiagnosticRule, rule_config: Dict[str, Any]) -> None:
        """Apply configuration to a specific rule."""
        if 'level' in rule_config:
            try:
                rule.level = CalcDiagnosticSeverity(rule_config['level'])
            except ValueError:
                logger.warning(f"Invalid level for rule {rule.name}: {rule_config['level']}")

        if 'enabled' in rule_config:
            rule.enabled = bool(rule_config['enabled'])

        rule.configure(rule_config)

    def set_signatures(self, signatures: FunctionSignatureTable) -> None:
        self.signatures = signatures

    def check_symbol(self, top: CalcSymbol) -> List[CalcDiagnostic]:
        """
        Check one top-level symbol and everything below it.

        The result depends only on the subtree, so it can be reused for an
        unchanged symbol of a later document version.

        Args:
            top: Top-level symbol

        Returns:
            Diagnostics found in the subtree, unsorted
        """
        context = RuleContext(self.signatures)
        diagnostics: List[CalcDiagnostic] = []

        for symbol in top.walk():
            for rule in self._node_rules[symbol.kind]:
                try:
                    diagnostics.extend(rule.check(symbol, context))
                except Exception as e:
                    logger.error(f"Error running diagnostic rule {rule.name} on {symbol.name!r}: {e}")

        for rule in self._tree_rules:
            try:
                diagnostics.extend(rule.check_tree(top, context))
            except Exception as e:
                logger.error(f"Error running diagnostic rule {rule.name}: {e}")

        return diagnostics

    def check_document(self, symbols: List[CalcSymbol]) -> List[CalcDiagnostic]:
        """Run the rules that need the whole top-level sequence."""
        context = RuleContext(self.signatures)
        diagnostics: List[CalcDiagnostic] = []

        for rule in self._document_rules:
            try:
                diagnostics.extend(rule.check_document(symbols, context))
            except Exception as e:
                logger.error(f"Error running diagnostic rule {rule.name}: {e}")

        return diagnostics

    def get_rule_info(self) -> Dict[str, Dict[str, Any]]:
        """Get information about all rules."""
        return {
            rule.name: {
                'description': rule.description,
                'level': rule.level.value,
                'enabled': rule.enabled,
            }
            for rule in self.rules
        }


# Export main classes
__all__ = [
    "DiagnosticsEngine",
]
