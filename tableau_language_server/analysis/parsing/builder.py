"""
Symbol builder for calculation token streams.

Turns the flat token list into a tree of CalcSymbol nodes. The builder is a
recursive descent parser that keeps an explicit stack of open block frames;
it never fails on malformed input but leaves constructs unterminated or wraps
unusable tokens into fallback expressions, which later stages report.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional

from . import Token, TokenType
from ... import internal_error
from ...lsp_data import CalcSymbol, CalcSymbolKind, SymbolDetail
from ...span import ZeroPosition, ZeroRange

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64

LOD_TYPES = frozenset({'FIXED', 'INCLUDE', 'EXCLUDE'})

CONSTANT_KEYWORDS = frozenset({'TRUE', 'FALSE', 'NULL'})

BRANCH_KEYWORDS = frozenset({'THEN', 'ELSEIF', 'ELSE', 'WHEN', 'END'})

OPENERS = frozenset({'(', '{', 'IF', 'CASE'})

CLOSERS = frozenset({')', '}', 'END'})


class BlockKind(Enum):
    """Kinds of open block contexts."""
    IF = "IF"
    CASE = "CASE"
    LOD = "LOD"
    CALL = "CALL"
    GROUP = "GROUP"


@dataclass
class BlockFrame:
    """An open block context on the builder stack."""
    kind: BlockKind
    open_symbol: CalcSymbol
    branches: List[CalcSymbol] = field(default_factory=list)


class SymbolBuilder:
    """Builds a symbol tree from calculation tokens."""

    def __init__(self, tokens: List[Token], content: str, max_depth: int = DEFAULT_MAX_DEPTH):
        if not tokens or tokens[-1].type != TokenType.EOF:
            raise ValueError("Token stream must end with EOF")
        self.tokens = tokens
        self.content = content
        self.max_depth = max_depth
        self.position = 0
        self.stack: List[BlockFrame] = []
        self.fallbacks: List[CalcSymbol] = []

    def build(self) -> List[CalcSymbol]:
        """Build the top-level symbol sequence."""
        symbols = self._parse_sequence(frozenset())
        if self.stack:
            # Frames are popped on every return path
            internal_error("Builder finished with {} open frames", len(self.stack))
            self.stack.clear()
        logger.debug(f"Built {len(symbols)} top-level symbols with {len(self.fallbacks)} fallbacks")
        return symbols

    # Token helpers

    def _current(self) -> Token:
        return self.tokens[self.position]

    def _is_at_end(self) -> bool:
        return self.tokens[self.position].type == TokenType.EOF

    def _advance(self) -> Token:
        token = self.tokens[self.position]
        if token.type != TokenType.EOF:
            self.position += 1
        return token

    def _previous_end(self) -> ZeroPosition:
        return self.tokens[self.position - 1].range.end

    def _previous_offset(self) -> int:
        return self.tokens[self.position - 1].end

    def _check(self, key: str) -> bool:
        return self._current().key == key

    def _source(self, start: int) -> str:
        return self.content[start:self._previous_offset()]

    def _close(self, symbol: CalcSymbol, start_token: Token) -> CalcSymbol:
        """Stretch a symbol over everything consumed since its first token."""
        symbol.range = ZeroRange(start_token.range.start, self._previous_end())
        symbol.raw_text = self._source(start_token.start)
        return symbol

    # Sequences

    def _parse_sequence(self, stops: FrozenSet[str]) -> List[CalcSymbol]:
        """Parse items until end of input or a token whose key is in ``stops``."""
        items = []
        while not self._is_at_end():
            if self._current().key in stops:
                break
            items.append(self._parse_item(stops))
        return items

    def _parse_item(self, stops: FrozenSet[str]) -> CalcSymbol:
        """Parse one item. Always consumes at least one token."""
        token = self._current()
        token_type = token.type

        if token_type == TokenType.KEYWORD:
            word = token.key
            if word == 'IF':
                return self._parse_conditional(BlockKind.IF, stops)
            if word == 'CASE':
                return self._parse_conditional(BlockKind.CASE, stops)
            if word in CONSTANT_KEYWORDS:
                return self._leaf(self._advance(), CalcSymbolKind.CONSTANT, word)
            return self._parse_unrecognized(stops)

        if token_type == TokenType.FUNCTION_NAME:
            return self._parse_function_call(stops)

        if token_type in (TokenType.FIELD_REFERENCE, TokenType.INCOMPLETE_FIELD_REFERENCE):
            return self._leaf(self._advance(), CalcSymbolKind.FIELD_REFERENCE,
                              field_name(token.value))

        if token_type in (TokenType.STRING_LITERAL, TokenType.NUMBER_LITERAL, TokenType.DATE_LITERAL):
            return self._leaf(self._advance(), CalcSymbolKind.CONSTANT, token.value)

        if token_type == TokenType.OPERATOR:
            return self._leaf(self._advance(), CalcSymbolKind.OPERATOR, token.key)

        if token_type == TokenType.IDENTIFIER:
            return self._leaf(self._advance(), CalcSymbolKind.CALCULATION_NAME, token.value)

        if token_type == TokenType.COMMENT:
            return self._leaf(self._advance(), CalcSymbolKind.COMMENT, token.value)

        if token_type == TokenType.PUNCTUATION:
            if token.value == '(':
                return self._parse_group(stops)
            if token.value == '{':
                return self._parse_lod(stops)

        return self._parse_unrecognized(stops)

    def _leaf(self, token: Token, kind: CalcSymbolKind, name: str) -> CalcSymbol:
        return CalcSymbol(
            name=name,
            kind=kind,
            range=token.range,
            raw_text=token.value,
            incomplete=token.incomplete
        )

    def _is_startable(self, token: Token) -> bool:
        """Whether a token can begin an item on its own."""
        if token.type == TokenType.KEYWORD:
            return token.key in ('IF', 'CASE') or token.key in CONSTANT_KEYWORDS
        if token.type == TokenType.PUNCTUATION:
            return token.value in ('(', '{')
        return token.type not in (TokenType.UNKNOWN, TokenType.EOF)

    def _parse_unrecognized(self, stops: FrozenSet[str]) -> CalcSymbol:
        """Merge a run of tokens that cannot start any construct into a fallback."""
        first = self._advance()
        while not self._is_at_end():
            token = self._current()
            if token.key in stops or self._is_startable(token):
                break
            self._advance()

        fallback = CalcSymbol(
            name="",
            kind=CalcSymbolKind.EXPRESSION,
            range=first.range,
            detail=SymbolDetail.UNRECOGNIZED
        )
        self._close(fallback, first)
        fallback.name = fallback.raw_text
        self.fallbacks.append(fallback)
        return fallback

    def _parse_too_deep(self, first: Token) -> CalcSymbol:
        """
        Skip a construct nested beyond the depth limit with a balanced scan.

        ``first`` has already been consumed and opened one level.
        """
        depth = 1
        while not self._is_at_end() and depth > 0:
            key = self._advance().key
            if key in OPENERS:
                depth += 1
            elif key in CLOSERS:
                depth -= 1

        fallback = CalcSymbol(
            name="",
            kind=CalcSymbolKind.EXPRESSION,
            range=first.range,
            detail=SymbolDetail.TOO_DEEP
        )
        self._close(fallback, first)
        fallback.name = fallback.raw_text
        self.fallbacks.append(fallback)
        return fallback

    def _too_deep(self) -> bool:
        return len(self.stack) >= self.max_depth

    def _wrap_operand(self, items: List[CalcSymbol], at: ZeroPosition) -> CalcSymbol:
        """Turn the items of one operand into a single symbol."""
        if len(items) == 1:
            return items[0]

        if not items:
            return CalcSymbol(
                name="",
                kind=CalcSymbolKind.EXPRESSION,
                range=ZeroRange(at, at),
                raw_text="",
                detail=SymbolDetail.OPERAND
            )

        start = items[0].range.start
        end = items[-1].range.end
        text = self._slice(items[0], items[-1])
        return CalcSymbol(
            name=" ".join(text.split()),
            kind=CalcSymbolKind.EXPRESSION,
            range=ZeroRange(start, end),
            children=items,
            raw_text=text,
            detail=SymbolDetail.OPERAND
        )

    def _slice(self, first: CalcSymbol, last: CalcSymbol) -> str:
        start = self._offset_of(first.range.start)
        end = self._offset_of(last.range.end)
        return self.content[start:end]

    def _offset_of(self, position: ZeroPosition) -> int:
        # Positions handed in always come from tokens of this stream
        low, high = 0, len(self.tokens) - 1
        while low <= high:
            mid = (low + high) // 2
            token = self.tokens[mid]
            if token.range.start == position:
                return token.start
            if token.range.end == position:
                return token.end
            if token.range.start < position:
                low = mid + 1
            else:
                high = mid - 1
        raise ValueError(f"Position {position} is not a token boundary")

    # Conditionals

    def _parse_conditional(self, kind: BlockKind, stops: FrozenSet[str]) -> CalcSymbol:
        """
        Parse an IF or CASE block.

        Branches attach in source order even when the order is invalid, so
        the diagnostics engine can report the problem on a complete tree.
        """
        opener = self._advance()
        block = CalcSymbol(
            name=kind.value,
            kind=CalcSymbolKind.KEYWORD,
            range=opener.range,
            detail=SymbolDetail.CONDITIONAL
        )
        if self._too_deep():
            return self._parse_too_deep(opener)

        frame = BlockFrame(kind, block)
        self.stack.append(frame)
        inner = stops | BRANCH_KEYWORDS

        condition = self._parse_sequence(inner)
        if condition:
            block.arguments.append(self._wrap_operand(condition, self._previous_end()))

        pending: Optional[CalcSymbol] = None
        while not self._is_at_end():
            key = self._current().key
            if key == 'END':
                end_token = self._advance()
                block.terminator = self._leaf(end_token, CalcSymbolKind.KEYWORD, 'END')
                break
            if key == 'THEN':
                then_branch = self._parse_branch_body(inner)
                if pending is not None:
                    pending.children.append(then_branch)
                    pending.range = ZeroRange(pending.range.start, then_branch.range.end)
                    pending.raw_text = self.content[
                        self._offset_of(pending.range.start):self._previous_offset()
                    ]
                else:
                    block.children.append(then_branch)
                    frame.branches.append(then_branch)
                pending = None
                continue
            if key in ('ELSEIF', 'WHEN'):
                branch_token = self._advance()
                branch = CalcSymbol(
                    name=key,
                    kind=CalcSymbolKind.KEYWORD,
                    range=branch_token.range,
                    detail=SymbolDetail.BRANCH
                )
                branch_condition = self._parse_sequence(inner)
                if branch_condition:
                    branch.arguments.append(self._wrap_operand(branch_condition, self._previous_end()))
                self._close(branch, branch_token)
                block.children.append(branch)
                frame.branches.append(branch)
                pending = branch
                continue
            if key == 'ELSE':
                else_branch = self._parse_branch_body(inner)
                block.children.append(else_branch)
                frame.branches.append(else_branch)
                pending = None
                continue
            # A delimiter that belongs to an enclosing construct
            break

        self.stack.pop()
        return self._close(block, opener)

    def _parse_branch_body(self, stops: FrozenSet[str]) -> CalcSymbol:
        """Parse THEN or ELSE followed by its body."""
        keyword = self._advance()
        branch = CalcSymbol(
            name=keyword.key,
            kind=CalcSymbolKind.KEYWORD,
            range=keyword.range,
            detail=SymbolDetail.BRANCH
        )
        branch.children = self._parse_sequence(stops)
        return self._close(branch, keyword)

    # Calls and groups

    def _parse_function_call(self, stops: FrozenSet[str]) -> CalcSymbol:
        name_token = self._advance()
        call = CalcSymbol(
            name=name_token.value.upper(),
            kind=CalcSymbolKind.FUNCTION_CALL,
            range=name_token.range,
            raw_text=name_token.value,
            detail=SymbolDetail.CALL
        )
        if not self._check('('):
            # The parenthesis lies beyond a bounded token stream
            return call
        if self._too_deep():
            self._advance()
            return self._parse_too_deep(name_token)

        self._advance()
        self.stack.append(BlockFrame(BlockKind.CALL, call))
        call.arguments, call.terminator = self._parse_delimited_list(stops)
        self.stack.pop()
        return self._close(call, name_token)

    def _parse_group(self, stops: FrozenSet[str]) -> CalcSymbol:
        open_token = self._advance()
        group = CalcSymbol(
            name="",
            kind=CalcSymbolKind.EXPRESSION,
            range=open_token.range,
            detail=SymbolDetail.GROUP
        )
        if self._too_deep():
            return self._parse_too_deep(open_token)

        self.stack.append(BlockFrame(BlockKind.GROUP, group))
        group.children, group.terminator = self._parse_delimited_list(stops)
        self.stack.pop()
        self._close(group, open_token)
        group.name = " ".join(group.raw_text.split())
        return group

    def _parse_delimited_list(self, stops: FrozenSet[str]):
        """
        Parse comma separated operands up to the closing parenthesis.

        Only commas at this nesting level split operands; commas inside
        nested calls, groups, brackets or strings belong to those.
        """
        inner = stops | {',', ')'}
        operands: List[CalcSymbol] = []

        while True:
            items = self._parse_sequence(inner)
            token = self._current()

            if token.key == ',':
                operands.append(self._wrap_operand(items, token.range.start))
                self._advance()
                continue

            if token.key == ')':
                if items or operands:
                    operands.append(self._wrap_operand(items, token.range.start))
                close = self._advance()
                return operands, self._leaf(close, CalcSymbolKind.OPERATOR, ')')

            # End of input, or a delimiter owned by an enclosing construct
            if items or operands:
                operands.append(self._wrap_operand(items, self._previous_end()))
            return operands, None

    # LOD expressions

    def _parse_lod(self, stops: FrozenSet[str]) -> CalcSymbol:
        """
        Parse ``{TYPE dims : aggregate}``.

        Without a type keyword and without a colon the braces hold a
        table-scoped aggregate such as ``{SUM([Sales])}``.
        """
        open_token = self._advance()
        lod = CalcSymbol(
            name="LOD",
            kind=CalcSymbolKind.LOD_EXPRESSION,
            range=open_token.range,
            detail=SymbolDetail.LOD
        )
        if self._too_deep():
            return self._parse_too_deep(open_token)

        self.stack.append(BlockFrame(BlockKind.LOD, lod))

        has_type = self._current().type == TokenType.KEYWORD and self._current().key in LOD_TYPES
        if has_type:
            lod.name = self._advance().key

        dimension_stops = stops | {',', ':', '}'}
        groups: List[List[CalcSymbol]] = []
        while True:
            items = self._parse_sequence(dimension_stops)
            if items:
                groups.append(items)
            if self._check(','):
                self._advance()
                continue
            break

        if self._check(':'):
            lod.arguments = [self._wrap_operand(items, items[0].range.start) for items in groups]
            lod.separator = self._leaf(self._advance(), CalcSymbolKind.OPERATOR, ':')
            lod.children = self._parse_sequence(stops | {'}'})
        elif not has_type and len(groups) == 1:
            lod.children = groups[0]
        else:
            lod.arguments = [self._wrap_operand(items, items[0].range.start) for items in groups]

        if self._check('}'):
            lod.terminator = self._leaf(self._advance(), CalcSymbolKind.OPERATOR, '}')

        self.stack.pop()
        return self._close(lod, open_token)


def field_name(value: str) -> str:
    """
    Get the display name of a field reference token.

    ``[Sales]`` becomes ``Sales``, ``[A]]B]`` becomes ``A]B`` and
    ``[Parameters].[Rate]`` becomes ``Parameters.Rate``.
    """
    inner = value[1:]
    if inner.endswith(']'):
        inner = inner[:-1]
    parts = inner.split('].[')
    return ".".join(part.replace(']]', ']') for part in parts)


def build_symbols(tokens: List[Token], content: str, max_depth: int = DEFAULT_MAX_DEPTH) -> List[CalcSymbol]:
    """Build the symbol tree for a token stream."""
    return SymbolBuilder(tokens, content, max_depth).build()


# Export main classes
__all__ = [
    "BlockKind",
    "BlockFrame",
    "SymbolBuilder",
    "build_symbols",
    "field_name",
    "DEFAULT_MAX_DEPTH",
    "LOD_TYPES",
]
