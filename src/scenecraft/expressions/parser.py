"""Parser for SceneCraft data-binding expressions.

Converts a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent for the outer grammar and precedence climbing for
binary operators.

The grammar follows JavaScript expression syntax closely enough that template
authors can write familiar expressions. It parses more than the sandbox
accepts (assignment, `new`, `this`, sequences, spread, bitwise operators) so
that the validator can reject those constructs by name.

Binary operator precedence (lowest to highest):
1. ??
2. ||
3. &&
4. |
5. ^
6. &
7. == != === !==
8. < <= > >= in instanceof
9. << >> >>>
10. + -
11. * / %
12. ** (right associative)

Above those: unary (! - + ~ typeof, prefix ++/--), then postfix
(member access, index, call, postfix ++/--).
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from scenecraft.errors import ExpressionError, ExpressionErrorKind
from scenecraft.expressions.lexer import Lexer, Token, TokenType


# -----------------------------------------------------------------------------
# AST Node Types
# -----------------------------------------------------------------------------


@dataclass
class ASTNode:
    """Base class for AST nodes."""
    pass


@dataclass
class Literal(ASTNode):
    """A literal value (number, string, boolean, null)."""
    value: Any


@dataclass
class Identifier(ASTNode):
    """A data or global reference."""
    name: str


@dataclass
class ThisExpression(ASTNode):
    """The `this` keyword."""


@dataclass
class MemberAccess(ASTNode):
    """Dot notation member access (e.g., user.name)."""
    object: ASTNode
    member: str


@dataclass
class IndexAccess(ASTNode):
    """Bracket notation (computed) member access (e.g., items[0])."""
    object: ASTNode
    index: ASTNode


@dataclass
class BinaryOp(ASTNode):
    """Binary or logical operation (e.g., a + b, x && y)."""
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass
class UnaryOp(ASTNode):
    """Unary operation (e.g., !x, -y)."""
    operator: str
    operand: ASTNode


@dataclass
class ConditionalOp(ASTNode):
    """Ternary operation (test ? consequent : alternate)."""
    test: ASTNode
    consequent: ASTNode
    alternate: ASTNode


@dataclass
class FunctionCall(ASTNode):
    """Function call (e.g., max(a, b)). The callee may be any expression."""
    callee: ASTNode
    arguments: list[ASTNode]


@dataclass
class NewExpression(ASTNode):
    """Constructor call (e.g., new Date())."""
    callee: ASTNode
    arguments: list[ASTNode]


@dataclass
class Assignment(ASTNode):
    """Assignment (e.g., a = 1, a += 1)."""
    operator: str
    target: ASTNode
    value: ASTNode


@dataclass
class Update(ASTNode):
    """Increment or decrement (e.g., a++, --b)."""
    operator: str
    argument: ASTNode
    prefix: bool


@dataclass
class Sequence(ASTNode):
    """Comma-separated expressions (e.g., a, b)."""
    expressions: list[ASTNode]


@dataclass
class Spread(ASTNode):
    """Spread element (e.g., ...items)."""
    argument: ASTNode


@dataclass
class ArrayLiteral(ASTNode):
    """Array literal (e.g., [1, 2, 3])."""
    elements: list[ASTNode]


@dataclass
class ObjectProperty(ASTNode):
    """A key/value pair in an object literal.

    Attributes:
        key: Identifier for bare keys, Literal for quoted or numeric keys,
            any expression for computed keys
        value: The value expression
        computed: True for `{[expr]: value}`
        shorthand: True for `{name}`
    """
    key: ASTNode
    value: ASTNode
    computed: bool = False
    shorthand: bool = False


@dataclass
class ObjectLiteral(ASTNode):
    """Object literal (e.g., {opacity: 0, "scale": 1})."""
    properties: list[ASTNode] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


class ParseError(ExpressionError):
    """Error during parsing."""

    def __init__(self, message: str, token: Token, source: str | None = None):
        self.token = token
        super().__init__(
            ExpressionErrorKind.PARSE_ERROR,
            f"{message} at position {token.position}",
            source,
        )


BINARY_PRECEDENCE: dict[str, int] = {
    "??": 1,
    "||": 2,
    "&&": 3,
    "|": 4,
    "^": 5,
    "&": 6,
    "==": 7, "!=": 7, "===": 7, "!==": 7,
    "<": 8, "<=": 8, ">": 8, ">=": 8, "in": 8, "instanceof": 8,
    "<<": 9, ">>": 9, ">>>": 9,
    "+": 10, "-": 10,
    "*": 11, "/": 11, "%": 11,
    "**": 12,
}

RIGHT_ASSOCIATIVE = frozenset({"**", "??"})

_BINARY_TOKENS = frozenset({
    TokenType.NULLISH, TokenType.OR, TokenType.AND,
    TokenType.BIT_OR, TokenType.BIT_XOR, TokenType.BIT_AND,
    TokenType.EQ, TokenType.NEQ, TokenType.STRICT_EQ, TokenType.STRICT_NEQ,
    TokenType.LT, TokenType.LTE, TokenType.GT, TokenType.GTE,
    TokenType.IN, TokenType.INSTANCEOF, TokenType.SHIFT,
    TokenType.PLUS, TokenType.MINUS,
    TokenType.MULTIPLY, TokenType.DIVIDE, TokenType.MODULO,
    TokenType.POWER,
})

_UNARY_TOKENS = frozenset({
    TokenType.NOT, TokenType.MINUS, TokenType.PLUS,
    TokenType.BIT_NOT, TokenType.TYPEOF,
})

# Keywords that may still be used as property names after '.'
_PROPERTY_NAME_TOKENS = frozenset({
    TokenType.IDENTIFIER, TokenType.THIS, TokenType.NEW,
    TokenType.TYPEOF, TokenType.IN, TokenType.INSTANCEOF,
})

DEFAULT_MAX_NESTING = 200


class Parser:
    """Recursive descent parser for the expression language.

    Usage:
        parser = Parser('user.first_name + " " + user.last_name')
        ast = parser.parse()
    """

    def __init__(self, source: str, max_nesting: int = DEFAULT_MAX_NESTING):
        self.source = source
        self.max_nesting = max_nesting
        self.lexer = Lexer(source)
        self.tokens = self.lexer.tokenize()
        self.position = 0
        self._nesting = 0

    def parse(self) -> ASTNode:
        """Parse the expression and return the AST root."""
        if not self.tokens or self.tokens[0].type == TokenType.EOF:
            raise ParseError("Empty expression", Token(TokenType.EOF, None, 0), self.source)

        try:
            ast = self._parse_sequence()
        except RecursionError:
            raise ExpressionError(
                ExpressionErrorKind.TOO_DEEP,
                "Expression too deep",
                self.source,
            ) from None

        if not self._is_at_end():
            raise ParseError(
                f"Unexpected token '{self._current().value}'",
                self._current(),
                self.source,
            )

        return ast

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _current(self) -> Token:
        """Get current token."""
        if self.position >= len(self.tokens):
            return Token(TokenType.EOF, None, len(self.source))
        return self.tokens[self.position]

    def _is_at_end(self) -> bool:
        """Check if we've consumed all tokens."""
        return self._current().type == TokenType.EOF

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        self.position += 1
        return token

    def _match(self, *types: TokenType) -> bool:
        """Check if current token matches any of the given types."""
        return self._current().type in types

    def _consume(self, token_type: TokenType, message: str) -> Token:
        """Consume a token of the expected type, or raise error."""
        if self._current().type == token_type:
            return self._advance()
        raise ParseError(message, self._current(), self.source)

    def _enter(self) -> None:
        self._nesting += 1
        if self._nesting > self.max_nesting:
            raise ExpressionError(
                ExpressionErrorKind.TOO_DEEP,
                "Expression too deep",
                self.source,
            )

    def _leave(self) -> None:
        self._nesting -= 1

    # -------------------------------------------------------------------------
    # Parsing methods (in order of precedence, lowest to highest)
    # -------------------------------------------------------------------------

    def _parse_sequence(self) -> ASTNode:
        """Parse a comma-separated sequence (lowest precedence)."""
        first = self._parse_assignment()
        if not self._match(TokenType.COMMA):
            return first

        expressions = [first]
        while self._match(TokenType.COMMA):
            self._advance()
            expressions.append(self._parse_assignment())
        return Sequence(expressions)

    def _parse_assignment(self) -> ASTNode:
        """Parse assignment (right associative) or a conditional expression."""
        self._enter()
        try:
            target = self._parse_conditional()
            if self._match(TokenType.ASSIGN):
                operator = str(self._advance().value)
                value = self._parse_assignment()
                return Assignment(operator, target, value)
            return target
        finally:
            self._leave()

    def _parse_conditional(self) -> ASTNode:
        """Parse ternary expression (test ? a : b)."""
        test = self._parse_binary(1)

        if not self._match(TokenType.QUESTION):
            return test

        self._advance()
        consequent = self._parse_assignment()
        self._consume(TokenType.COLON, "Expected ':' in conditional expression")
        alternate = self._parse_assignment()
        return ConditionalOp(test, consequent, alternate)

    def _parse_binary(self, min_precedence: int) -> ASTNode:
        """Parse binary operators by precedence climbing."""
        left = self._parse_unary()

        while self._current().type in _BINARY_TOKENS:
            operator = str(self._current().value)
            precedence = BINARY_PRECEDENCE[operator]
            if precedence < min_precedence:
                break

            self._advance()
            next_min = precedence if operator in RIGHT_ASSOCIATIVE else precedence + 1
            right = self._parse_binary(next_min)
            left = BinaryOp(operator, left, right)

        return left

    def _parse_unary(self) -> ASTNode:
        """Parse unary expression (!, -, +, ~, typeof, prefix ++/--)."""
        if self._current().type in _UNARY_TOKENS:
            operator = str(self._advance().value)
            self._enter()
            try:
                operand = self._parse_unary()
            finally:
                self._leave()
            return UnaryOp(operator, operand)

        if self._match(TokenType.UPDATE):
            operator = str(self._advance().value)
            self._enter()
            try:
                argument = self._parse_unary()
            finally:
                self._leave()
            return Update(operator, argument, prefix=True)

        expr = self._parse_postfix()

        if self._match(TokenType.UPDATE):
            operator = str(self._advance().value)
            return Update(operator, expr, prefix=False)

        return expr

    def _parse_postfix(self) -> ASTNode:
        """Parse postfix expressions (member access, index, function call)."""
        if self._match(TokenType.NEW):
            expr = self._parse_new()
        else:
            expr = self._parse_primary()

        while True:
            if self._match(TokenType.DOT):
                expr = MemberAccess(expr, self._parse_property_name())

            elif self._match(TokenType.LBRACKET):
                self._advance()
                index = self._parse_sequence()
                self._consume(TokenType.RBRACKET, "Expected ']' after index")
                expr = IndexAccess(expr, index)

            elif self._match(TokenType.LPAREN):
                expr = FunctionCall(expr, self._parse_arguments())

            else:
                break

        return expr

    def _parse_new(self) -> NewExpression:
        """Parse `new Callee(args)`; arguments are optional."""
        self._consume(TokenType.NEW, "Expected 'new'")
        callee = self._parse_primary()

        while self._match(TokenType.DOT):
            callee = MemberAccess(callee, self._parse_property_name())

        arguments: list[ASTNode] = []
        if self._match(TokenType.LPAREN):
            arguments = self._parse_arguments()
        return NewExpression(callee, arguments)

    def _parse_property_name(self) -> str:
        self._consume(TokenType.DOT, "Expected '.'")
        token = self._current()
        if token.type in _PROPERTY_NAME_TOKENS:
            self._advance()
            return str(token.value)
        if token.type == TokenType.BOOLEAN:
            self._advance()
            return "true" if token.value else "false"
        if token.type == TokenType.NULL:
            self._advance()
            return "null"
        raise ParseError("Expected identifier after '.'", token, self.source)

    def _parse_primary(self) -> ASTNode:
        """Parse primary expression (literals, identifiers, grouped expressions)."""
        token = self._current()

        # Literals
        if token.type in (TokenType.NUMBER, TokenType.STRING, TokenType.BOOLEAN):
            self._advance()
            return Literal(token.value)

        if token.type == TokenType.NULL:
            self._advance()
            return Literal(None)

        # Identifier (data reference or function name)
        if token.type == TokenType.IDENTIFIER:
            self._advance()
            return Identifier(str(token.value))

        if token.type == TokenType.THIS:
            self._advance()
            return ThisExpression()

        # Grouped expression
        if token.type == TokenType.LPAREN:
            self._advance()
            self._enter()
            try:
                expr = self._parse_sequence()
            finally:
                self._leave()
            self._consume(TokenType.RPAREN, "Expected ')' after expression")
            return expr

        # Array literal
        if token.type == TokenType.LBRACKET:
            return self._parse_array_literal()

        # Object literal
        if token.type == TokenType.LBRACE:
            return self._parse_object_literal()

        if token.type == TokenType.EOF:
            raise ParseError("Unexpected end of expression", token, self.source)

        raise ParseError(f"Unexpected token '{token.value}'", token, self.source)

    def _parse_element(self) -> ASTNode:
        """Parse one argument or array element, allowing spread."""
        if self._match(TokenType.SPREAD):
            self._advance()
            return Spread(self._parse_assignment())
        return self._parse_assignment()

    def _parse_arguments(self) -> list[ASTNode]:
        """Parse a call's arguments in parentheses."""
        self._consume(TokenType.LPAREN, "Expected '('")

        arguments: list[ASTNode] = []

        if not self._match(TokenType.RPAREN):
            arguments.append(self._parse_element())

            while self._match(TokenType.COMMA):
                self._advance()
                arguments.append(self._parse_element())

        self._consume(TokenType.RPAREN, "Expected ')' after arguments")

        return arguments

    def _parse_array_literal(self) -> ArrayLiteral:
        """Parse an array literal [a, b, c]."""
        self._consume(TokenType.LBRACKET, "Expected '['")

        elements: list[ASTNode] = []

        if not self._match(TokenType.RBRACKET):
            elements.append(self._parse_element())

            while self._match(TokenType.COMMA):
                self._advance()
                # Trailing comma
                if self._match(TokenType.RBRACKET):
                    break
                elements.append(self._parse_element())

        self._consume(TokenType.RBRACKET, "Expected ']' after array elements")

        return ArrayLiteral(elements)

    def _parse_object_literal(self) -> ObjectLiteral:
        """Parse an object literal {key: value}."""
        self._consume(TokenType.LBRACE, "Expected '{'")

        properties: list[ASTNode] = []

        if not self._match(TokenType.RBRACE):
            properties.append(self._parse_object_property())

            while self._match(TokenType.COMMA):
                self._advance()
                # Trailing comma
                if self._match(TokenType.RBRACE):
                    break
                properties.append(self._parse_object_property())

        self._consume(TokenType.RBRACE, "Expected '}' after object")

        return ObjectLiteral(properties)

    def _parse_object_property(self) -> ASTNode:
        """Parse a key-value pair, shorthand property or spread in an object literal."""
        if self._match(TokenType.SPREAD):
            self._advance()
            return Spread(self._parse_assignment())

        # Computed key
        if self._match(TokenType.LBRACKET):
            self._advance()
            key: ASTNode = self._parse_assignment()
            self._consume(TokenType.RBRACKET, "Expected ']' after computed key")
            self._consume(TokenType.COLON, "Expected ':' after object key")
            return ObjectProperty(key, self._parse_assignment(), computed=True)

        token = self._current()
        if token.type in (TokenType.STRING, TokenType.NUMBER):
            self._advance()
            key = Literal(token.value)
        elif token.type == TokenType.IDENTIFIER:
            self._advance()
            key = Identifier(str(token.value))
            # Shorthand property {name}
            if not self._match(TokenType.COLON):
                return ObjectProperty(key, Identifier(key.name), shorthand=True)
        else:
            raise ParseError(
                "Expected string, number or identifier as object key",
                token,
                self.source,
            )

        self._consume(TokenType.COLON, "Expected ':' after object key")

        return ObjectProperty(key, self._parse_assignment())


def parse(source: str, max_nesting: int = DEFAULT_MAX_NESTING) -> ASTNode:
    """Convenience function to parse an expression string.

    Args:
        source: The expression string
        max_nesting: Maximum grouping/unary nesting before TOO_DEEP is raised

    Returns:
        The AST root node
    """
    return Parser(source, max_nesting).parse()


@lru_cache(maxsize=1024)
def parse_cached(source: str, max_nesting: int = DEFAULT_MAX_NESTING) -> ASTNode:
    """Parse with a process-wide cache.

    Parsing is a pure function of the source text, so the same template
    expression evaluated for many render requests is parsed once. Callers must
    not mutate the returned tree.
    """
    return parse(source, max_nesting)
