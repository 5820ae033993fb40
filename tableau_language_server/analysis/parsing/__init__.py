"""
Calculation parsing module.

Provides lexical analysis of calculation text. The lexer never fails: text
it cannot make sense of still becomes a token, and unterminated constructs
are flagged on the token for the later stages to report.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import logging
from typing import List, Optional
from enum import Enum
from dataclasses import dataclass

from ...span import ZeroPosition, ZeroRange, SpanBuilder

logger = logging.getLogger(__name__)


class TokenType(Enum):
    """Types of calculation tokens."""
    KEYWORD = "keyword"
    FUNCTION_NAME = "function name"
    IDENTIFIER = "identifier"
    FIELD_REFERENCE = "field reference"
    INCOMPLETE_FIELD_REFERENCE = "incomplete field reference"
    STRING_LITERAL = "string literal"
    NUMBER_LITERAL = "number literal"
    DATE_LITERAL = "date literal"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    COMMENT = "comment"
    UNKNOWN = "unknown"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    """A token from calculation source text. Offsets are absolute."""
    type: TokenType
    value: str
    range: ZeroRange
    start: int
    end: int
    incomplete: bool = False

    @property
    def key(self) -> str:
        """Upper-cased keyword or the literal punctuation/operator text."""
        if self.type in (TokenType.KEYWORD, TokenType.OPERATOR):
            return self.value.upper()
        if self.type == TokenType.PUNCTUATION:
            return self.value
        return ""

    def __str__(self) -> str:
        return f"{self.type.value}({self.value!r}) at {self.range}"


class CalcLexer:
    """Lexical analyzer for calculation text."""

    KEYWORDS = frozenset({
        'IF', 'THEN', 'ELSEIF', 'ELSE', 'END', 'CASE', 'WHEN',
        'FIXED', 'INCLUDE', 'EXCLUDE', 'TRUE', 'FALSE', 'NULL',
    })

    WORD_OPERATORS = frozenset({'AND', 'OR', 'NOT', 'IN'})

    TWO_CHAR_OPERATORS = frozenset({'==', '!=', '<>', '<=', '>='})

    SINGLE_CHAR_OPERATORS = frozenset('+-*/%^=<>')

    PUNCTUATION = frozenset('(){},:]')

    def __init__(self, content: str, start: int = 0, end: Optional[int] = None):
        self.content = content
        self.end = len(content) if end is None else min(end, len(content))
        self.position = max(0, start)
        self.truncated = False

        if self.position:
            position = SpanBuilder(content).position_from_offset(self.position)
            self.line, self.column = position.line, position.column
        else:
            self.line = 0
            self.column = 0

    def tokenize(self) -> List[Token]:
        """Tokenize the content into a list of tokens ending with EOF."""
        tokens = []

        while self.position < self.end:
            token = self._next_token()
            if token:
                tokens.append(token)

        eof_pos = ZeroPosition(self.line, self.column)
        tokens.append(Token(TokenType.EOF, "", ZeroRange(eof_pos, eof_pos), self.position, self.position))

        return tokens

    def _next_token(self) -> Optional[Token]:
        """Get the next token from the input."""
        char = self._current_char()

        if char.isspace():
            self._skip_whitespace()
            return None

        if char == '/' and self._peek_char() == '/':
            return self._read_line_comment()
        if char == '/' and self._peek_char() == '*':
            return self._read_block_comment()

        if char in ('"', "'"):
            return self._read_string(char)

        if char == '[':
            return self._read_field_reference()

        if char == '#':
            return self._read_date()

        if char.isdigit() or (char == '.' and self._peek_char().isdigit()):
            return self._read_number()

        if char.isalpha() or char == '_':
            return self._read_identifier()

        start, start_pos = self.position, self._here()
        pair = char + self._peek_char()
        if pair in self.TWO_CHAR_OPERATORS:
            self._advance()
            self._advance()
            return self._make_token(TokenType.OPERATOR, start, start_pos)

        self._advance()
        if char in self.SINGLE_CHAR_OPERATORS:
            return self._make_token(TokenType.OPERATOR, start, start_pos)
        if char in self.PUNCTUATION:
            return self._make_token(TokenType.PUNCTUATION, start, start_pos)

        return self._make_token(TokenType.UNKNOWN, start, start_pos)

    def _current_char(self) -> str:
        """Get the current character."""
        if self.position >= self.end:
            return '\0'
        return self.content[self.position]

    def _peek_char(self, distance: int = 1) -> str:
        """Peek ahead without leaving the lexing bound."""
        if self.position + distance >= self.end:
            return '\0'
        return self.content[self.position + distance]

    def _advance(self) -> None:
        """Advance to the next character."""
        if self.position < self.end:
            if self.content[self.position] == '\n':
                self.line += 1
                self.column = 0
            else:
                self.column += 1
            self.position += 1

    def _here(self) -> ZeroPosition:
        return ZeroPosition(self.line, self.column)

    def _make_token(self, token_type: TokenType, start: int, start_pos: ZeroPosition,
                    incomplete: bool = False) -> Token:
        return Token(
            token_type,
            self.content[start:self.position],
            ZeroRange(start_pos, self._here()),
            start,
            self.position,
            incomplete
        )

    def _hit_bound(self) -> bool:
        """True when scanning stopped at the bound although the text goes on."""
        return self.position >= self.end and self.end < len(self.content)

    def _skip_whitespace(self) -> None:
        while self.position < self.end and self._current_char().isspace():
            self._advance()

    def _read_line_comment(self) -> Token:
        """Read a line comment."""
        start, start_pos = self.position, self._here()

        while self.position < self.end and self._current_char() != '\n':
            self._advance()

        return self._make_token(TokenType.COMMENT, start, start_pos)

    def _read_block_comment(self) -> Token:
        """Read a block comment. An unterminated one runs to the end of input."""
        start, start_pos = self.position, self._here()

        # Skip /*
        self._advance()
        self._advance()

        while self.position < self.end:
            if self._current_char() == '*' and self._peek_char() == '/':
                self._advance()
                self._advance()
                return self._make_token(TokenType.COMMENT, start, start_pos)
            self._advance()

        if self._hit_bound():
            self.truncated = True
        return self._make_token(TokenType.COMMENT, start, start_pos, incomplete=True)

    def _read_string(self, quote: str) -> Token:
        """
        Read a string literal.

        Both backslash escapes and doubled quotes are accepted. A string that
        is not closed before the end of the line is returned incomplete.
        """
        start, start_pos = self.position, self._here()

        # Skip opening quote
        self._advance()

        while self.position < self.end:
            char = self._current_char()
            if char == '\n':
                break
            if char == '\\' and self._peek_char() not in ('\0', '\n'):
                self._advance()
                self._advance()
                continue
            if char == quote:
                if self._peek_char() == quote:
                    self._advance()
                    self._advance()
                    continue
                self._advance()
                return self._make_token(TokenType.STRING_LITERAL, start, start_pos)
            self._advance()

        if self._hit_bound():
            self.truncated = True
        return self._make_token(TokenType.STRING_LITERAL, start, start_pos, incomplete=True)

    def _read_field_reference(self) -> Token:
        """
        Read a bracketed field reference such as ``[Sales]``.

        ``]]`` inside the brackets is an escaped bracket. Qualified references
        like ``[Parameters].[Rate]`` become a single token.
        """
        start, start_pos = self.position, self._here()

        while True:
            # Skip [
            self._advance()
            closed = False
            while self.position < self.end:
                char = self._current_char()
                if char == '\n':
                    break
                if char == ']':
                    if self._peek_char() == ']':
                        self._advance()
                        self._advance()
                        continue
                    self._advance()
                    closed = True
                    break
                self._advance()

            if not closed:
                if self._hit_bound():
                    self.truncated = True
                return self._make_token(TokenType.INCOMPLETE_FIELD_REFERENCE, start, start_pos,
                                        incomplete=True)

            if self._current_char() == '.' and self._peek_char() == '[':
                self._advance()
                continue

            return self._make_token(TokenType.FIELD_REFERENCE, start, start_pos)

    def _read_date(self) -> Token:
        """Read a ``#2024-01-31#`` date literal."""
        start, start_pos = self.position, self._here()

        # Skip opening #
        self._advance()

        while self.position < self.end and self._current_char() != '\n':
            if self._current_char() == '#':
                self._advance()
                return self._make_token(TokenType.DATE_LITERAL, start, start_pos)
            self._advance()

        if self._hit_bound():
            self.truncated = True
        return self._make_token(TokenType.DATE_LITERAL, start, start_pos, incomplete=True)

    def _read_number(self) -> Token:
        """Read a number literal with optional fraction and exponent."""
        start, start_pos = self.position, self._here()

        while self._current_char().isdigit():
            self._advance()

        if self._current_char() == '.' and self._peek_char().isdigit():
            self._advance()
            while self._current_char().isdigit():
                self._advance()
        elif self._current_char() == '.' and self.position > start:
            # Trailing dot as in "1."
            self._advance()

        if self._current_char() in ('e', 'E'):
            sign = self._peek_char()
            if sign.isdigit() or (sign in ('+', '-') and self._peek_char(2).isdigit()):
                self._advance()
                if sign in ('+', '-'):
                    self._advance()
                while self._current_char().isdigit():
                    self._advance()

        return self._make_token(TokenType.NUMBER_LITERAL, start, start_pos)

    def _read_identifier(self) -> Token:
        """Read an identifier, keyword, word operator or function name."""
        start, start_pos = self.position, self._here()

        while self._current_char().isalnum() or self._current_char() == '_':
            self._advance()

        word = self.content[start:self.position].upper()
        if word in self.KEYWORDS:
            token_type = TokenType.KEYWORD
        elif word in self.WORD_OPERATORS:
            token_type = TokenType.OPERATOR
        elif self._next_significant_char() == '(':
            token_type = TokenType.FUNCTION_NAME
        else:
            token_type = TokenType.IDENTIFIER

        return self._make_token(token_type, start, start_pos)

    def _next_significant_char(self) -> str:
        """
        Look past whitespace for the next character.

        The lookahead reads past the lexing bound, so a bounded pass
        classifies names the same way a full pass does.
        """
        index = self.position
        length = len(self.content)
        while index < length and self.content[index].isspace():
            index += 1
        return self.content[index] if index < length else '\0'


def tokenize(content: str) -> List[Token]:
    """Tokenize a whole document."""
    return CalcLexer(content).tokenize()


# Export main classes
__all__ = [
    "TokenType",
    "Token",
    "CalcLexer",
    "tokenize",
]
