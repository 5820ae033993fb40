"""
Diagnostic rules for calculation symbol trees.

Node rules inspect one symbol at a time and declare the symbol kinds they
apply to. Tree rules look at a whole top-level symbol, document rules at the
whole top-level sequence.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Iterator, List, Optional

from ...lsp_data import (
    CalcDiagnostic,
    CalcDiagnosticSeverity,
    CalcSymbol,
    CalcSymbolKind,
    DiagnosticCategory,
    SymbolDetail,
)
from ...signatures import FunctionSignatureTable
from ...span import ZeroPosition, ZeroRange

LOD_TYPES = frozenset({'FIXED', 'INCLUDE', 'EXCLUDE'})


@dataclass
class RuleContext:
    """Read-only inputs shared by all rules during one check."""
    signatures: FunctionSignatureTable


def meaningful(symbols: Iterable[CalcSymbol]) -> List[CalcSymbol]:
    """Drop complete comments from a sequence."""
    return [s for s in symbols if s.kind != CalcSymbolKind.COMMENT or s.incomplete]


class DiagnosticRule:
    """Base class for rules applied to single symbols."""

    kinds: FrozenSet[CalcSymbolKind] = frozenset()

    def __init__(self, name: str, description: str,
                 level: CalcDiagnosticSeverity = CalcDiagnosticSeverity.WARNING):
        self.name = name
        self.description = description
        self.level = level
        self.enabled = True

    def check(self, symbol: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        """
        Check one symbol for violations of this rule.

        Args:
            symbol: Symbol whose kind is listed in ``kinds``
            context: Shared rule inputs

        Returns:
            List of diagnostics for violations found
        """
        raise NotImplementedError("Subclasses must implement check()")

    def configure(self, settings: dict) -> None:
        """Apply rule-specific settings."""

    def _create(self, range_obj: ZeroRange, message: str, category: DiagnosticCategory,
                severity: Optional[CalcDiagnosticSeverity] = None,
                guidance: Optional[str] = None, **data) -> CalcDiagnostic:
        if guidance:
            data['guidance'] = guidance
        return CalcDiagnostic(
            range=range_obj,
            message=message,
            severity=severity or self.level,
            category=category,
            code=self.name,
            data=data
        )


class TreeRule(DiagnosticRule):
    """Base class for rules applied once per top-level symbol."""

    def check_tree(self, top: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        raise NotImplementedError("Subclasses must implement check_tree()")


class DocumentRule(DiagnosticRule):
    """Base class for rules applied to the whole top-level sequence."""

    def check_document(self, symbols: List[CalcSymbol], context: RuleContext) -> List[CalcDiagnostic]:
        raise NotImplementedError("Subclasses must implement check_document()")


class UnclosedBlockRule(DiagnosticRule):
    """Blocks and delimiters that are never closed."""

    kinds = frozenset({
        CalcSymbolKind.KEYWORD,
        CalcSymbolKind.FUNCTION_CALL,
        CalcSymbolKind.EXPRESSION,
        CalcSymbolKind.LOD_EXPRESSION,
    })

    def __init__(self):
        super().__init__(
            name="unclosed_block",
            description="Every IF, CASE, LOD and parenthesis must be closed",
            level=CalcDiagnosticSeverity.ERROR
        )

    def check(self, symbol: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        if not symbol.is_container or symbol.is_closed:
            return []

        if symbol.detail == SymbolDetail.CONDITIONAL:
            return [self._create(
                symbol.range,
                f"{symbol.name} block is not closed. Add END to close it.",
                DiagnosticCategory.UNCLOSED_BLOCK,
                guidance=f"Finish the {symbol.name} block and close it with END."
            )]

        if symbol.detail == SymbolDetail.LOD:
            return [self._create(
                symbol.range,
                "LOD expression is not closed. Add '}' to close it.",
                DiagnosticCategory.UNCLOSED_BLOCK,
                guidance="Close the LOD expression with '}'.",
                closable=True
            )]

        if symbol.detail == SymbolDetail.CALL:
            return [self._create(
                symbol.range,
                f"Function call {symbol.name} is missing a closing ')'.",
                DiagnosticCategory.UNCLOSED_DELIMITER,
                guidance=f"Close the {symbol.name} function call with ')'.",
                closable=True
            )]

        return [self._create(
            symbol.range,
            "Parenthesis is not closed. Add ')' to close it.",
            DiagnosticCategory.UNCLOSED_DELIMITER,
            guidance="Close the parenthesis with ')'.",
            closable=True
        )]


class ConditionalStructureRule(DiagnosticRule):
    """Branch presence and ordering inside IF and CASE blocks."""

    kinds = frozenset({CalcSymbolKind.KEYWORD})

    def __init__(self):
        super().__init__(
            name="conditional_structure",
            description="IF needs THEN, CASE needs WHEN, ELSE comes last",
            level=CalcDiagnosticSeverity.ERROR
        )

    def check(self, symbol: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        if symbol.detail == SymbolDetail.CONDITIONAL:
            if symbol.name == 'IF':
                return self._check_if(symbol)
            return self._check_case(symbol)

        if symbol.detail == SymbolDetail.BRANCH and symbol.name in ('ELSEIF', 'WHEN'):
            return self._check_conditional_branch(symbol)

        return []

    def _check_if(self, block: CalcSymbol) -> List[CalcDiagnostic]:
        errors = []

        if not meaningful(block.arguments):
            errors.append(self._create(
                block.range,
                "IF statement is missing a condition.",
                DiagnosticCategory.MISSING_CONDITION,
                guidance="Add a condition after IF."
            ))

        seen_then = seen_elseif = seen_else = False
        for branch in block.children:
            if branch.name == 'THEN':
                if seen_then:
                    errors.append(self._order_error(branch, "IF statement already has a THEN branch."))
                elif seen_elseif or seen_else:
                    errors.append(self._order_error(branch, "THEN must come directly after the IF condition."))
                seen_then = True
            elif branch.name == 'ELSEIF':
                if seen_else:
                    errors.append(self._order_error(branch, "ELSEIF cannot follow ELSE. ELSE must be the last branch."))
                seen_elseif = True
            elif branch.name == 'ELSE':
                if seen_else:
                    errors.append(self._order_error(branch, "IF statement already has an ELSE branch."))
                seen_else = True
            elif branch.name == 'WHEN':
                errors.append(self._order_error(branch, "WHEN is only valid inside a CASE statement."))

        if not seen_then:
            errors.append(self._create(
                block.range,
                "IF statement is missing THEN.",
                DiagnosticCategory.MISSING_BRANCH,
                guidance="Partial IF statement. Continue with THEN, a result, and END."
            ))

        return errors

    def _check_case(self, block: CalcSymbol) -> List[CalcDiagnostic]:
        errors = []

        if not meaningful(block.arguments):
            errors.append(self._create(
                block.range,
                "CASE statement is missing an expression to test.",
                DiagnosticCategory.MISSING_CONDITION,
                guidance="Add the expression to test after CASE."
            ))

        seen_when = seen_else = False
        for branch in block.children:
            if branch.name == 'WHEN':
                if seen_else:
                    errors.append(self._order_error(branch, "WHEN cannot follow ELSE. ELSE must be the last branch."))
                seen_when = True
            elif branch.name == 'ELSE':
                if seen_else:
                    errors.append(self._order_error(branch, "CASE statement already has an ELSE branch."))
                seen_else = True
            elif branch.name == 'THEN':
                errors.append(self._order_error(branch, "THEN must follow a WHEN value."))
            elif branch.name == 'ELSEIF':
                errors.append(self._order_error(branch, "ELSEIF is not valid inside CASE. Use WHEN instead."))

        if not seen_when:
            errors.append(self._create(
                block.range,
                "CASE statement requires at least one WHEN branch.",
                DiagnosticCategory.MISSING_BRANCH,
                guidance="Partial CASE statement. Continue with WHEN, a value, THEN and a result."
            ))

        return errors

    def _check_conditional_branch(self, branch: CalcSymbol) -> List[CalcDiagnostic]:
        errors = []

        if not meaningful(branch.arguments):
            errors.append(self._create(
                branch.range,
                f"{branch.name} is missing a condition.",
                DiagnosticCategory.MISSING_CONDITION,
                guidance=f"Add a condition after {branch.name}."
            ))

        if not branch.children:
            errors.append(self._create(
                branch.range,
                f"{branch.name} is missing THEN.",
                DiagnosticCategory.MISSING_BRANCH,
                guidance=f"Continue the {branch.name} branch with THEN and a result."
            ))

        return errors

    def _order_error(self, branch: CalcSymbol, message: str) -> CalcDiagnostic:
        return self._create(branch.range, message, DiagnosticCategory.BRANCH_ORDER)


def _branch_bodies(block: CalcSymbol) -> Iterator[CalcSymbol]:
    """Yield the branch symbols that directly own a body."""
    for branch in block.children:
        if branch.name in ('THEN', 'ELSE'):
            yield branch
        else:
            yield from branch.children


class EmptyBranchRule(DiagnosticRule):
    """Branches of a finished block without any content."""

    kinds = frozenset({CalcSymbolKind.KEYWORD})

    def __init__(self):
        super().__init__(
            name="empty_branch",
            description="Branches should contain an expression",
            level=CalcDiagnosticSeverity.WARNING
        )

    def check(self, symbol: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        if symbol.detail != SymbolDetail.CONDITIONAL or not symbol.is_closed:
            return []

        return [
            self._create(
                branch.range,
                f"{branch.name} branch is empty.",
                DiagnosticCategory.EMPTY_BRANCH
            )
            for branch in _branch_bodies(symbol)
            if not meaningful(branch.children)
        ]


class MissingElseRule(DiagnosticRule):
    """IF blocks without an ELSE branch return NULL when no condition holds."""

    kinds = frozenset({CalcSymbolKind.KEYWORD})

    def __init__(self):
        super().__init__(
            name="missing_else",
            description="IF statements should end with an ELSE branch",
            level=CalcDiagnosticSeverity.WARNING
        )

    def check(self, symbol: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        if symbol.detail != SymbolDetail.CONDITIONAL or symbol.name != 'IF' or not symbol.is_closed:
            return []
        if any(branch.name == 'ELSE' for branch in symbol.children):
            return []
        return [self._create(
            symbol.range,
            "IF statement has no ELSE branch and may produce NULL.",
            DiagnosticCategory.MISSING_ELSE
        )]


class FunctionSignatureRule(DiagnosticRule):
    """Unknown functions and argument counts."""

    kinds = frozenset({CalcSymbolKind.FUNCTION_CALL})

    def __init__(self):
        super().__init__(
            name="function_signature",
            description="Functions must exist and receive a valid number of arguments",
            level=CalcDiagnosticSeverity.WARNING
        )

    def check(self, symbol: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        signature = context.signatures.get(symbol.name)

        if signature is None:
            start = symbol.range.start
            name_range = ZeroRange(start, ZeroPosition(start.line, start.column + len(symbol.name)))
            data = {}
            suggestion = context.signatures.suggest(symbol.name)
            if suggestion:
                data['suggestion'] = suggestion
            return [self._create(
                name_range,
                f"Unknown function: {symbol.name}",
                DiagnosticCategory.UNKNOWN_FUNCTION,
                severity=CalcDiagnosticSeverity.WARNING,
                **data
            )]

        # The argument list of an unclosed call is still being written
        if not symbol.is_closed:
            return []

        count = len(symbol.arguments)
        if signature.accepts(count):
            return []

        return [self._create(
            symbol.range,
            f"Function {symbol.name} expects {signature.describe_arity()} arguments, but got {count}.",
            DiagnosticCategory.ARGUMENT_COUNT,
            severity=CalcDiagnosticSeverity.ERROR
        )]


def _contains_aggregate(symbols: Iterable[CalcSymbol], signatures: FunctionSignatureTable) -> bool:
    stack = list(symbols)
    while stack:
        symbol = stack.pop()
        if symbol.kind == CalcSymbolKind.LOD_EXPRESSION:
            continue
        if symbol.kind == CalcSymbolKind.FUNCTION_CALL and signatures.is_aggregate(symbol.name):
            return True
        stack.extend(symbol.owned_parts())
    return False


class LODStructureRule(DiagnosticRule):
    """Missing components of level of detail expressions."""

    kinds = frozenset({CalcSymbolKind.LOD_EXPRESSION})

    def __init__(self):
        super().__init__(
            name="lod_structure",
            description="LOD expressions need a type, a colon and an aggregate",
            level=CalcDiagnosticSeverity.WARNING
        )

    def check(self, symbol: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        warnings = []
        has_type = symbol.name in LOD_TYPES
        table_scoped = not has_type and symbol.separator is None and bool(meaningful(symbol.children))

        if not has_type and not table_scoped:
            message = "Incomplete LOD expression. Specify an aggregation type: FIXED, INCLUDE, or EXCLUDE."
            warnings.append(self._create(
                symbol.range, message, DiagnosticCategory.INCOMPLETE_LOD,
                guidance=message, missing="type"
            ))

        if has_type and symbol.separator is None:
            message = ("Incomplete LOD expression. LOD expressions require a colon after the "
                       "aggregation type (FIXED, INCLUDE, EXCLUDE).")
            warnings.append(self._create(
                symbol.range, message, DiagnosticCategory.INCOMPLETE_LOD,
                guidance=message, missing="colon"
            ))

        if not _contains_aggregate(symbol.owned_parts(), context.signatures):
            message = "LOD expression may be missing an aggregation function (SUM, AVG, COUNT, etc.)."
            warnings.append(self._create(
                symbol.range, message, DiagnosticCategory.INCOMPLETE_LOD,
                guidance=message, missing="aggregate"
            ))

        return warnings


class IncompleteTokenRule(DiagnosticRule):
    """Field references, strings, dates and comments that are never closed."""

    kinds = frozenset({
        CalcSymbolKind.FIELD_REFERENCE,
        CalcSymbolKind.CONSTANT,
        CalcSymbolKind.COMMENT,
    })

    def __init__(self):
        super().__init__(
            name="incomplete_token",
            description="Delimited tokens must be closed",
            level=CalcDiagnosticSeverity.ERROR
        )

    def check(self, symbol: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        if not symbol.incomplete:
            return []

        text = symbol.raw_text or ""
        if symbol.kind == CalcSymbolKind.FIELD_REFERENCE:
            message = "Field reference is missing a closing ']'."
            guidance = "Partial field reference detected. Ensure brackets are balanced."
        elif symbol.kind == CalcSymbolKind.COMMENT:
            message = "Block comment is not terminated."
            guidance = "Close the comment with '*/'."
        elif text.startswith('#'):
            message = "Date literal is missing a closing '#'."
            guidance = "Close the date literal with '#'."
        else:
            quote = text[:1] or '"'
            message = "String literal is not terminated."
            guidance = f"Close the string with {quote}."

        return [self._create(symbol.range, message, DiagnosticCategory.INCOMPLETE_TOKEN, guidance=guidance)]


def _operand_sequences(symbol: CalcSymbol) -> Iterator[List[CalcSymbol]]:
    """Yield the sequences a container owns, each of which must not end in an operator."""
    detail = symbol.detail
    if detail == SymbolDetail.BRANCH:
        yield symbol.children
        for argument in symbol.arguments:
            yield [argument]
    elif detail in (SymbolDetail.CONDITIONAL, SymbolDetail.CALL):
        for argument in symbol.arguments:
            yield [argument]
    elif detail == SymbolDetail.GROUP:
        for element in symbol.children:
            yield [element]
    elif detail == SymbolDetail.OPERAND:
        yield symbol.children
    elif detail == SymbolDetail.LOD:
        for argument in symbol.arguments:
            yield [argument]
        yield symbol.children


def dangling_operator(sequence: List[CalcSymbol]) -> Optional[CalcSymbol]:
    """Return the operator a sequence ends with, if any."""
    items = meaningful(sequence)
    if items and items[-1].kind == CalcSymbolKind.OPERATOR:
        return items[-1]
    return None


def dangling_operator_diagnostic(rule: DiagnosticRule, operator: CalcSymbol) -> CalcDiagnostic:
    return rule._create(
        operator.range,
        f"Operator '{operator.name}' is missing its right operand.",
        DiagnosticCategory.INCOMPLETE_EXPRESSION,
        severity=CalcDiagnosticSeverity.ERROR,
        guidance=f"Add a value after '{operator.name}' to complete the expression."
    )


class DanglingOperatorRule(DiagnosticRule):
    """Operands and bodies that end with an operator."""

    kinds = frozenset({
        CalcSymbolKind.KEYWORD,
        CalcSymbolKind.FUNCTION_CALL,
        CalcSymbolKind.EXPRESSION,
        CalcSymbolKind.LOD_EXPRESSION,
    })

    def __init__(self):
        super().__init__(
            name="dangling_operator",
            description="Operators need a right operand",
            level=CalcDiagnosticSeverity.ERROR
        )

    def check(self, symbol: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        errors = []
        for sequence in _operand_sequences(symbol):
            operator = dangling_operator(sequence)
            if operator is not None:
                errors.append(dangling_operator_diagnostic(self, operator))
        return errors


class NestedAggregationRule(DiagnosticRule):
    """Aggregations applied directly to other aggregations."""

    kinds = frozenset({CalcSymbolKind.FUNCTION_CALL})

    def __init__(self):
        super().__init__(
            name="nested_aggregation",
            description="Avoid aggregating an aggregate outside of LOD expressions",
            level=CalcDiagnosticSeverity.INFORMATION
        )

    def check(self, symbol: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        if not context.signatures.is_aggregate(symbol.name):
            return []

        found = []
        stack = list(reversed(symbol.arguments))
        while stack:
            inner = stack.pop()
            if inner.kind == CalcSymbolKind.LOD_EXPRESSION:
                continue
            if inner.kind == CalcSymbolKind.FUNCTION_CALL and context.signatures.is_aggregate(inner.name):
                found.append(self._create(
                    inner.range,
                    f"Nested aggregation: {inner.name} inside {symbol.name}. "
                    "Consider using a LOD expression instead.",
                    DiagnosticCategory.PERFORMANCE
                ))
                continue
            stack.extend(reversed(list(inner.owned_parts())))
        return found


STRING_HEAVY_FUNCTIONS = frozenset({'REPLACE', 'REGEXP_REPLACE'})
DATE_ARITHMETIC_FUNCTIONS = frozenset({'DATEADD', 'DATEDIFF'})


def _is_compound(argument: CalcSymbol) -> bool:
    """An operand built from a call, block or several symbols rather than one value."""
    if not argument.name:
        return False
    return argument.kind in (
        CalcSymbolKind.FUNCTION_CALL,
        CalcSymbolKind.LOD_EXPRESSION,
        CalcSymbolKind.KEYWORD,
        CalcSymbolKind.EXPRESSION,
    )


class PerformancePatternRule(DiagnosticRule):
    """Function calls that are known to be slow on large data sources."""

    kinds = frozenset({CalcSymbolKind.FUNCTION_CALL})

    def __init__(self):
        super().__init__(
            name="performance_pattern",
            description="Flag expensive string operations and compound date arithmetic",
            level=CalcDiagnosticSeverity.INFORMATION
        )

    def check(self, symbol: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        if symbol.name in STRING_HEAVY_FUNCTIONS:
            return [self._create(
                symbol.range,
                f"Complex string operation: {symbol.name}. Consider pre-processing the data "
                "or using separate calculated fields for complex string operations.",
                DiagnosticCategory.PERFORMANCE,
                pattern="string"
            )]

        if symbol.name in DATE_ARITHMETIC_FUNCTIONS and symbol.is_closed and symbol.arguments:
            if _is_compound(symbol.arguments[-1]):
                return [self._create(
                    symbol.range,
                    f"Complex date calculation in {symbol.name}. Consider simplifying the date "
                    "expression or computing it in a separate step.",
                    DiagnosticCategory.PERFORMANCE,
                    pattern="date"
                )]

        return []


class NestingDepthRule(TreeRule):
    """Deeply nested expressions are hard to read and slow to evaluate."""

    def __init__(self, max_depth: int = 6):
        super().__init__(
            name="nesting_depth",
            description="Expressions should not nest deeper than the threshold",
            level=CalcDiagnosticSeverity.INFORMATION
        )
        self.max_depth = max_depth

    def configure(self, settings: dict) -> None:
        if 'max_depth' in settings:
            self.max_depth = int(settings['max_depth'])

    def check_tree(self, top: CalcSymbol, context: RuleContext) -> List[CalcDiagnostic]:
        deepest = 0
        anchor: Optional[CalcSymbol] = None
        stack = [(top, 0)]
        while stack:
            symbol, depth = stack.pop()
            if symbol.is_container:
                depth += 1
                if depth > self.max_depth and anchor is None:
                    anchor = symbol
                deepest = max(deepest, depth)
            stack.extend((part, depth) for part in reversed(list(symbol.owned_parts())))

        if anchor is None:
            return []
        return [self._create(
            anchor.range,
            f"Expression is nested {deepest} levels deep. "
            "Consider splitting it into separate calculated fields.",
            DiagnosticCategory.PERFORMANCE
        )]


class EmptyDocumentRule(DocumentRule):
    """Documents without any expression."""

    def __init__(self):
        super().__init__(
            name="empty_document",
            description="Calculations should contain an expression",
            level=CalcDiagnosticSeverity.INFORMATION
        )

    def check_document(self, symbols: List[CalcSymbol], context: RuleContext) -> List[CalcDiagnostic]:
        if meaningful(symbols):
            return []
        origin = ZeroPosition(0, 0)
        return [self._create(
            ZeroRange(origin, origin),
            "Empty calculation. Add an expression to get started.",
            DiagnosticCategory.EMPTY_DOCUMENT
        )]


class TrailingOperatorRule(DocumentRule):
    """A document whose last top-level symbol is an operator."""

    def __init__(self):
        super().__init__(
            name="trailing_operator",
            description="Operators at the end of the calculation need a right operand",
            level=CalcDiagnosticSeverity.ERROR
        )

    def check_document(self, symbols: List[CalcSymbol], context: RuleContext) -> List[CalcDiagnostic]:
        operator = dangling_operator(symbols)
        if operator is None:
            return []
        return [dangling_operator_diagnostic(self, operator)]


WINDOWED_FUNCTIONS = frozenset({'WINDOW_SUM', 'WINDOW_AVG', 'LOOKUP'})


def complexity_score(symbols: Iterable[CalcSymbol]) -> int:
    """
    Score how hard a calculation is to read and evaluate.

    Calls count 1 (3 for window and lookup functions), LOD expressions 5 and
    field references 0.5. Every symbol adds half its nesting depth and every
    argument adds 0.2, or 1 when its text is longer than 50 characters.
    """
    score = 0.0
    stack = [(symbol, 0) for symbol in reversed(list(symbols))]
    while stack:
        symbol, depth = stack.pop()
        if symbol.kind == CalcSymbolKind.FUNCTION_CALL:
            score += 3 if symbol.name in WINDOWED_FUNCTIONS else 1
        elif symbol.kind == CalcSymbolKind.LOD_EXPRESSION:
            score += 5
        elif symbol.kind == CalcSymbolKind.FIELD_REFERENCE:
            score += 0.5
        score += depth * 0.5

        for argument in symbol.arguments:
            score += 1 if len(argument.raw_text or "") > 50 else 0.2

        stack.extend((part, depth + 1) for part in reversed(list(symbol.owned_parts())))

    # Half-up rounding
    return int(score + 0.5)


class ComplexityRule(DocumentRule):
    """Calculations complex enough to be worth splitting up."""

    def __init__(self, threshold: int = 25):
        super().__init__(
            name="complexity",
            description="Calculations should stay below the complexity threshold",
            level=CalcDiagnosticSeverity.INFORMATION
        )
        self.threshold = threshold

    def configure(self, settings: dict) -> None:
        if 'threshold' in settings:
            self.threshold = int(settings['threshold'])

    def check_document(self, symbols: List[CalcSymbol], context: RuleContext) -> List[CalcDiagnostic]:
        score = complexity_score(symbols)
        if score <= self.threshold:
            return []
        origin = ZeroPosition(0, 0)
        return [self._create(
            ZeroRange(origin, origin),
            f"Very complex calculation (complexity score: {score}). Consider breaking it into "
            "multiple calculated fields for better maintainability and performance.",
            DiagnosticCategory.PERFORMANCE,
            score=score
        )]


ALL_NODE_RULES = [
    UnclosedBlockRule,
    ConditionalStructureRule,
    EmptyBranchRule,
    MissingElseRule,
    FunctionSignatureRule,
    LODStructureRule,
    IncompleteTokenRule,
    DanglingOperatorRule,
    NestedAggregationRule,
    PerformancePatternRule,
]

ALL_TREE_RULES = [
    NestingDepthRule,
]

ALL_DOCUMENT_RULES = [
    EmptyDocumentRule,
    TrailingOperatorRule,
    ComplexityRule,
]


def get_default_rules() -> List[DiagnosticRule]:
    """Get instances of every built-in rule."""
    return [rule_class() for rule_class in ALL_NODE_RULES + ALL_TREE_RULES + ALL_DOCUMENT_RULES]


# Export main classes
__all__ = [
    "RuleContext",
    "DiagnosticRule",
    "TreeRule",
    "DocumentRule",
    "UnclosedBlockRule",
    "ConditionalStructureRule",
    "EmptyBranchRule",
    "MissingElseRule",
    "FunctionSignatureRule",
    "LODStructureRule",
    "IncompleteTokenRule",
    "DanglingOperatorRule",
    "NestedAggregationRule",
    "PerformancePatternRule",
    "NestingDepthRule",
    "EmptyDocumentRule",
    "TrailingOperatorRule",
    "ComplexityRule",
    "complexity_score",
    "get_default_rules",
    "meaningful",
    "dangling_operator",
]
