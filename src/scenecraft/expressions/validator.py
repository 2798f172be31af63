"""Whitelist validation pass for SceneCraft expressions.

Runs once per distinct expression before it is ever evaluated. Every node
type and operator must be explicitly allowed; anything else is rejected with
a typed ExpressionError. Validation is fail-fast: the first violation aborts.

Resource bounds enforced here:
- maximum depth of the expression tree
- maximum number of nodes (counted while visiting)

The maximum source length is checked by the sandbox before parsing.
"""

from typing import Any, Mapping

from scenecraft.errors import ExpressionError, ExpressionErrorKind
from scenecraft.expressions.parser import (
    ASTNode,
    ArrayLiteral,
    Assignment,
    BinaryOp,
    ConditionalOp,
    FunctionCall,
    Identifier,
    IndexAccess,
    Literal,
    MemberAccess,
    NewExpression,
    ObjectLiteral,
    ObjectProperty,
    Sequence,
    Spread,
    ThisExpression,
    UnaryOp,
    Update,
)

ALLOWED_UNARY_OPERATORS = frozenset({"+", "-", "!"})

ALLOWED_BINARY_OPERATORS = frozenset({
    "+", "-", "*", "/", "%", "**",
    "==", "!=", "===", "!==",
    "<", "<=", ">", ">=",
    "&&", "||",
    "??",
})

FORBIDDEN_PROPERTIES = frozenset({"__proto__", "prototype", "constructor"})

_ALWAYS_REJECTED = {
    ThisExpression: "this",
    NewExpression: "new",
    Assignment: "assignment",
    Update: "increment/decrement",
    Sequence: "sequence",
    Spread: "spread",
}


def resolve_callable(name: str, data: Mapping[str, Any], global_env: Mapping[str, Any]) -> Any:
    """Resolve a function name the way both validation and evaluation do.

    The data environment wins unless its value is None; otherwise the global
    environment is consulted. Returns None when nothing is found.
    """
    fn = data.get(name)
    if fn is None:
        fn = global_env.get(name)
    return fn


class Validator:
    """Validates an expression AST against the sandbox whitelist.

    Usage:
        validator = Validator(data, GLOBAL_ENVIRONMENT, max_depth=200, max_nodes=5000)
        validator.validate(ast)
    """

    def __init__(
        self,
        data: Mapping[str, Any],
        global_env: Mapping[str, Any],
        max_depth: int = 200,
        max_nodes: int = 5_000,
        source: str | None = None,
    ):
        self.data = data
        self.global_env = global_env
        self.max_depth = max_depth
        self.max_nodes = max_nodes
        self.source = source
        self._nodes = 0

    def validate(self, node: ASTNode) -> None:
        """Validate the tree rooted at node, raising on the first violation."""
        self._nodes = 0
        self._visit(node, 0)

    def _error(self, kind: ExpressionErrorKind, message: str) -> ExpressionError:
        return ExpressionError(kind, message, self.source)

    def _visit(self, node: ASTNode, depth: int) -> None:
        if depth > self.max_depth:
            raise self._error(ExpressionErrorKind.TOO_DEEP, "Expression too deep")
        self._nodes += 1
        if self._nodes > self.max_nodes:
            raise self._error(ExpressionErrorKind.TOO_COMPLEX, "Expression too complex")

        if isinstance(node, (Literal, Identifier)):
            return

        if isinstance(node, UnaryOp):
            if node.operator not in ALLOWED_UNARY_OPERATORS:
                raise self._error(
                    ExpressionErrorKind.DISALLOWED_OPERATOR,
                    f"Unary operator not allowed: {node.operator}",
                )
            self._visit(node.operand, depth + 1)
            return

        if isinstance(node, BinaryOp):
            if node.operator not in ALLOWED_BINARY_OPERATORS:
                raise self._error(
                    ExpressionErrorKind.DISALLOWED_OPERATOR,
                    f"Operator not allowed: {node.operator}",
                )
            self._visit(node.left, depth + 1)
            self._visit(node.right, depth + 1)
            return

        if isinstance(node, ConditionalOp):
            self._visit(node.test, depth + 1)
            self._visit(node.consequent, depth + 1)
            self._visit(node.alternate, depth + 1)
            return

        if isinstance(node, IndexAccess):
            raise self._error(
                ExpressionErrorKind.COMPUTED_MEMBER_NOT_ALLOWED,
                "Computed member access not allowed",
            )

        if isinstance(node, MemberAccess):
            if node.member in FORBIDDEN_PROPERTIES:
                raise self._error(
                    ExpressionErrorKind.FORBIDDEN_PROPERTY,
                    f"Forbidden property: {node.member}",
                )
            self._visit(node.object, depth + 1)
            return

        if isinstance(node, FunctionCall):
            self._validate_call(node, depth)
            return

        if isinstance(node, ArrayLiteral):
            for element in node.elements:
                self._visit(element, depth + 1)
            return

        if isinstance(node, ObjectLiteral):
            for prop in node.properties:
                if not isinstance(prop, ObjectProperty):
                    # Spread inside an object literal
                    self._visit(prop, depth + 1)
                    continue
                if prop.computed:
                    self._visit(prop.key, depth + 1)
                self._visit(prop.value, depth + 1)
            return

        rejected = _ALWAYS_REJECTED.get(type(node))
        if rejected is not None:
            raise self._error(
                ExpressionErrorKind.DISALLOWED_SYNTAX,
                f"Syntax not allowed: {rejected}",
            )

        raise self._error(
            ExpressionErrorKind.DISALLOWED_SYNTAX,
            f"Unsupported syntax: {type(node).__name__}",
        )

    def _validate_call(self, node: FunctionCall, depth: int) -> None:
        if not isinstance(node.callee, Identifier):
            raise self._error(
                ExpressionErrorKind.DISALLOWED_SYNTAX,
                "Only global function calls are allowed (no obj.method())",
            )

        name = node.callee.name
        if not callable(resolve_callable(name, self.data, self.global_env)):
            raise self._error(
                ExpressionErrorKind.UNKNOWN_FUNCTION,
                f"Function not found: {name}",
            )

        for argument in node.arguments:
            self._visit(argument, depth + 1)
