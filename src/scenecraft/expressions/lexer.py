"""Lexer/tokenizer for SceneCraft data-binding expressions.

Converts expression strings into a stream of tokens for the parser.

The token set is deliberately wider than what the sandbox allows: operators
such as `=`, `++` or `~` are tokenized (and parsed) so that the validator can
reject them with a precise error instead of a generic syntax error.

Token types:
- Literals: NUMBER, STRING, BOOLEAN, NULL
- Identifiers: IDENTIFIER (data names, function names)
- Keywords: THIS, NEW, TYPEOF, IN, INSTANCEOF
- Operators: comparison, logical, arithmetic, bitwise, assignment, update
- Punctuation: LPAREN, RPAREN, LBRACKET, RBRACKET, LBRACE, RBRACE,
  COMMA, DOT, COLON, QUESTION, SPREAD
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator

from scenecraft.errors import ExpressionError, ExpressionErrorKind


class TokenType(Enum):
    """Types of tokens in the expression language."""

    # Literals
    NUMBER = auto()
    STRING = auto()
    BOOLEAN = auto()
    NULL = auto()

    # Identifiers and keywords
    IDENTIFIER = auto()
    THIS = auto()
    NEW = auto()
    TYPEOF = auto()
    IN = auto()
    INSTANCEOF = auto()

    # Equality operators
    STRICT_EQ = auto()   # ===
    STRICT_NEQ = auto()  # !==
    EQ = auto()          # ==
    NEQ = auto()         # !=

    # Relational operators
    LT = auto()          # <
    LTE = auto()         # <=
    GT = auto()          # >
    GTE = auto()         # >=

    # Logical operators
    AND = auto()         # &&
    OR = auto()          # ||
    NULLISH = auto()     # ??
    NOT = auto()         # !

    # Arithmetic operators
    PLUS = auto()        # +
    MINUS = auto()       # -
    MULTIPLY = auto()    # *
    DIVIDE = auto()      # /
    MODULO = auto()      # %
    POWER = auto()       # **

    # Bitwise operators (never allowed, parsed for diagnostics)
    BIT_AND = auto()     # &
    BIT_OR = auto()      # |
    BIT_XOR = auto()     # ^
    BIT_NOT = auto()     # ~
    SHIFT = auto()       # << >> >>>

    # Mutation (never allowed, parsed for diagnostics)
    ASSIGN = auto()      # = += -= ...
    UPDATE = auto()      # ++ --

    # Punctuation
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    LBRACKET = auto()    # [
    RBRACKET = auto()    # ]
    LBRACE = auto()      # {
    RBRACE = auto()      # }
    COMMA = auto()       # ,
    DOT = auto()         # .
    COLON = auto()       # :
    QUESTION = auto()    # ?
    SPREAD = auto()      # ...

    # End of input
    EOF = auto()


@dataclass(frozen=True)
class Token:
    """A single token from the lexer.

    Attributes:
        type: The token type
        value: The token's value (number, string content, operator text, etc.)
        position: Character position in the source string
    """

    type: TokenType
    value: str | int | float | bool | None
    position: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, pos={self.position})"


class LexerError(ExpressionError):
    """Error during lexical analysis."""

    def __init__(self, message: str, position: int, source: str | None = None):
        self.position = position
        super().__init__(
            ExpressionErrorKind.PARSE_ERROR,
            f"{message} at position {position}",
            source,
        )


# Token patterns (order matters - longer matches first)
TOKEN_PATTERNS = [
    # Whitespace (skip)
    (r"\s+", None),

    (r"\.\.\.", TokenType.SPREAD),

    # Numbers (integer, decimal, exponent)
    (r"(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", TokenType.NUMBER),

    # Three-character operators
    (r"===", TokenType.STRICT_EQ),
    (r"!==", TokenType.STRICT_NEQ),
    (r">>>=|<<=|>>=|\*\*=|\?\?=|&&=|\|\|=", TokenType.ASSIGN),
    (r">>>", TokenType.SHIFT),

    # Two-character operators
    (r"\*\*", TokenType.POWER),
    (r"==", TokenType.EQ),
    (r"!=", TokenType.NEQ),
    (r"<=", TokenType.LTE),
    (r">=", TokenType.GTE),
    (r"&&", TokenType.AND),
    (r"\|\|", TokenType.OR),
    (r"\?\?", TokenType.NULLISH),
    (r"\+\+|--", TokenType.UPDATE),
    (r"[-+*/%&|^]=", TokenType.ASSIGN),
    (r"<<|>>", TokenType.SHIFT),

    # Single character operators
    (r"<", TokenType.LT),
    (r">", TokenType.GT),
    (r"!", TokenType.NOT),
    (r"~", TokenType.BIT_NOT),
    (r"\+", TokenType.PLUS),
    (r"-", TokenType.MINUS),
    (r"\*", TokenType.MULTIPLY),
    (r"/", TokenType.DIVIDE),
    (r"%", TokenType.MODULO),
    (r"&", TokenType.BIT_AND),
    (r"\|", TokenType.BIT_OR),
    (r"\^", TokenType.BIT_XOR),
    (r"=", TokenType.ASSIGN),

    # Punctuation
    (r"\(", TokenType.LPAREN),
    (r"\)", TokenType.RPAREN),
    (r"\[", TokenType.LBRACKET),
    (r"\]", TokenType.RBRACKET),
    (r"\{", TokenType.LBRACE),
    (r"\}", TokenType.RBRACE),
    (r",", TokenType.COMMA),
    (r"\.", TokenType.DOT),
    (r":", TokenType.COLON),
    (r"\?", TokenType.QUESTION),

    # Strings (double or single quoted)
    (r'"([^"\\]|\\.)*"', TokenType.STRING),
    (r"'([^'\\]|\\.)*'", TokenType.STRING),

    # Keywords and identifiers (must come after operators)
    (r"[a-zA-Z_$][a-zA-Z0-9_$]*", TokenType.IDENTIFIER),
]

# Keywords are case-sensitive
KEYWORDS = {
    "true": (TokenType.BOOLEAN, True),
    "false": (TokenType.BOOLEAN, False),
    "null": (TokenType.NULL, None),
    "this": (TokenType.THIS, "this"),
    "new": (TokenType.NEW, "new"),
    "typeof": (TokenType.TYPEOF, "typeof"),
    "in": (TokenType.IN, "in"),
    "instanceof": (TokenType.INSTANCEOF, "instanceof"),
}

_COMPILED_PATTERNS = [
    (re.compile(pattern), token_type) for pattern, token_type in TOKEN_PATTERNS
]

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


class Lexer:
    """Tokenizer for the expression language.

    Usage:
        lexer = Lexer('name ?? "anonymous"')
        for token in lexer:
            print(token)
    """

    def __init__(self, source: str):
        self.source = source
        self.position = 0

    def __iter__(self) -> Iterator[Token]:
        """Iterate over all tokens in the source."""
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break

    def next_token(self) -> Token:
        """Get the next token from the source."""
        while self.position < len(self.source):
            for pattern, token_type in _COMPILED_PATTERNS:
                match = pattern.match(self.source, self.position)
                if match:
                    break
            else:
                raise LexerError(
                    f"Unexpected character '{self.source[self.position]}'",
                    self.position,
                    self.source,
                )

            value = match.group()
            start = self.position
            self.position = match.end()

            # Skip whitespace
            if token_type is None:
                continue

            return self._make_token(token_type, value, start)

        return Token(TokenType.EOF, None, self.position)

    def _make_token(self, token_type: TokenType, value: str, start: int) -> Token:
        if token_type == TokenType.NUMBER:
            # integers past the double range are read as floats (Infinity)
            if any(c in value for c in ".eE") or len(value) > 308:
                return Token(token_type, float(value), start)
            return Token(token_type, int(value), start)

        if token_type == TokenType.STRING:
            # Remove quotes and unescape
            return Token(token_type, self._unescape_string(value[1:-1]), start)

        if token_type == TokenType.IDENTIFIER and value in KEYWORDS:
            keyword_type, keyword_value = KEYWORDS[value]
            return Token(keyword_type, keyword_value, start)

        return Token(token_type, value, start)

    def _unescape_string(self, s: str) -> str:
        """Process escape sequences in a string."""
        result = []
        i = 0
        while i < len(s):
            if s[i] == "\\" and i + 1 < len(s):
                next_char = s[i + 1]
                if next_char == "u" and re.fullmatch(r"[0-9a-fA-F]{4}", s[i + 2:i + 6]):
                    result.append(chr(int(s[i + 2:i + 6], 16)))
                    i += 6
                    continue
                result.append(_ESCAPES.get(next_char, next_char))
                i += 2
            else:
                result.append(s[i])
                i += 1
        return "".join(result)

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source and return list of tokens."""
        return list(self)
