"""Evaluator for SceneCraft expressions.

Walks a validated AST and computes the result against an evaluation context
holding the per-request data environment and the global function
environment.

Values follow JavaScript semantics where templates are likely to rely on
them: `&&`, `||` and `??` return operand values, `+` concatenates when either
side is a string, division by zero yields an infinity or NaN, and missing
names evaluate to the UNDEFINED sentinel rather than raising.

Numbers behave as doubles at the edges: integers stay exact while they fit
the double range and collapse to an infinity beyond it, and strings convert
only when they match JavaScript numeric syntax.
"""

import math
import re
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from scenecraft.errors import ExpressionError, ExpressionErrorKind
from scenecraft.expressions.environment import GLOBAL_ENVIRONMENT, MAX_EXACT_INT_BITS
from scenecraft.expressions.parser import (
    ASTNode,
    ArrayLiteral,
    BinaryOp,
    ConditionalOp,
    FunctionCall,
    Identifier,
    Literal,
    MemberAccess,
    ObjectLiteral,
    ObjectProperty,
    UnaryOp,
)
from scenecraft.expressions.validator import FORBIDDEN_PROPERTIES, resolve_callable


class _Undefined:
    """Value of a name that exists in neither environment."""

    _instance: "_Undefined | None" = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()

_DECIMAL_PATTERN = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]{1,308}")
_RADIX_PATTERN = re.compile(r"0([xXoObB])([0-9a-fA-F]+)")
_RADIX = {"x": 16, "o": 8, "b": 2}


# -----------------------------------------------------------------------------
# Value helpers
# -----------------------------------------------------------------------------


def is_nullish(value: Any) -> bool:
    """True for None and UNDEFINED."""
    return value is None or value is UNDEFINED


def js_number(value: Any) -> Any:
    """Collapse an integer outside the double range to an infinity."""
    if isinstance(value, int) and not isinstance(value, bool) and abs(value) > sys.float_info.max:
        return math.inf if value > 0 else -math.inf
    return value


def string_to_number(text: str) -> int | float:
    """Convert a string the way JavaScript's Number() does."""
    text = text.strip()
    if not text:
        return 0
    if _INTEGER_PATTERN.fullmatch(text):
        return js_number(int(text))
    if _DECIMAL_PATTERN.fullmatch(text):
        return float(text)
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf
    match = _RADIX_PATTERN.fullmatch(text)
    if match:
        try:
            return js_number(int(match.group(2), _RADIX[match.group(1).lower()]))
        except ValueError:
            return math.nan
    return math.nan


def is_truthy(value: Any) -> bool:
    """Convert a value to boolean using JavaScript truthiness."""
    if is_nullish(value):
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, float):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return len(value) > 0
    return True


def _format_number(value: float | int) -> str:
    value = js_number(value)
    if isinstance(value, int):
        if abs(value) < 10**21:
            return str(value)
        value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def to_js_string(value: Any) -> str:
    """Convert a value to a string the way JavaScript's String() does."""
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ",".join("" if is_nullish(item) else to_js_string(item) for item in value)
    if isinstance(value, Mapping):
        return "[object Object]"
    return str(value)


def _js_type(value: Any) -> str:
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if callable(value):
        return "function"
    return "object"


@dataclass
class EvaluationContext:
    """Context for expression evaluation.

    Attributes:
        data: The per-request data environment; shadows the global environment
        global_env: Global functions and constants
        null_safe_member: Member access on null/undefined yields UNDEFINED
            instead of raising NULL_DEREFERENCE
        max_depth: Maximum evaluation depth
        source: The expression text, for error messages
    """

    data: Mapping[str, Any] = field(default_factory=dict)
    global_env: Mapping[str, Any] = field(default_factory=lambda: GLOBAL_ENVIRONMENT)
    null_safe_member: bool = True
    max_depth: int = 200
    source: str | None = None


class Evaluator:
    """Evaluates a validated expression AST against a context.

    Usage:
        ctx = EvaluationContext(data={"name": "Hi"})
        evaluator = Evaluator(ctx)
        result = evaluator.evaluate(ast)
    """

    def __init__(self, context: EvaluationContext):
        self.context = context
        self._handlers: dict[type, Callable[[Any, int], Any]] = {
            Literal: self._eval_literal,
            Identifier: self._eval_identifier,
            UnaryOp: self._eval_unary,
            BinaryOp: self._eval_binary,
            ConditionalOp: self._eval_conditional,
            MemberAccess: self._eval_member,
            FunctionCall: self._eval_call,
            ArrayLiteral: self._eval_array,
            ObjectLiteral: self._eval_object,
        }

    def evaluate(self, node: ASTNode, depth: int = 0) -> Any:
        """Evaluate an AST node and return the result."""
        if depth > self.context.max_depth:
            raise self._error(ExpressionErrorKind.TOO_DEEP, "Expression too deep")

        handler = self._handlers.get(type(node))
        if handler is None:
            raise self._error(
                ExpressionErrorKind.DISALLOWED_SYNTAX,
                f"Unsupported syntax: {type(node).__name__}",
            )
        return handler(node, depth)

    def _error(self, kind: ExpressionErrorKind, message: str) -> ExpressionError:
        return ExpressionError(kind, message, self.context.source)

    # -------------------------------------------------------------------------
    # Node type evaluators
    # -------------------------------------------------------------------------

    def _eval_literal(self, node: Literal, depth: int) -> Any:
        return node.value

    def _eval_identifier(self, node: Identifier, depth: int) -> Any:
        """Data shadows globals; unknown names are UNDEFINED."""
        if node.name in self.context.data:
            return self.context.data[node.name]
        if node.name in self.context.global_env:
            return self.context.global_env[node.name]
        return UNDEFINED

    def _eval_unary(self, node: UnaryOp, depth: int) -> Any:
        operand = self.evaluate(node.operand, depth + 1)

        if node.operator == "!":
            return not is_truthy(operand)
        if node.operator == "+":
            return self._to_number(operand)
        if node.operator == "-":
            return -self._to_number(operand)

        raise self._error(
            ExpressionErrorKind.DISALLOWED_OPERATOR,
            f"Unary operator not allowed: {node.operator}",
        )

    def _eval_binary(self, node: BinaryOp, depth: int) -> Any:
        op = node.operator
        left = self.evaluate(node.left, depth + 1)

        # Short-circuit: only evaluate the right side when needed
        if op == "&&":
            return self.evaluate(node.right, depth + 1) if is_truthy(left) else left
        if op == "||":
            return left if is_truthy(left) else self.evaluate(node.right, depth + 1)
        if op == "??":
            return self.evaluate(node.right, depth + 1) if is_nullish(left) else left

        right = self.evaluate(node.right, depth + 1)

        if op == "+":
            return self._add(left, right)
        if op == "-":
            return js_number(self._to_number(left) - self._to_number(right))
        if op == "*":
            return js_number(self._to_number(left) * self._to_number(right))
        if op == "/":
            return self._divide(self._to_number(left), self._to_number(right))
        if op == "%":
            return self._modulo(self._to_number(left), self._to_number(right))
        if op == "**":
            return self._power(self._to_number(left), self._to_number(right))

        if op == "==":
            return self._loose_equals(left, right)
        if op == "!=":
            return not self._loose_equals(left, right)
        if op == "===":
            return self._strict_equals(left, right)
        if op == "!==":
            return not self._strict_equals(left, right)

        if op in ("<", "<=", ">", ">="):
            return self._compare(op, left, right)

        raise self._error(
            ExpressionErrorKind.DISALLOWED_OPERATOR,
            f"Operator not allowed: {op}",
        )

    def _eval_conditional(self, node: ConditionalOp, depth: int) -> Any:
        if is_truthy(self.evaluate(node.test, depth + 1)):
            return self.evaluate(node.consequent, depth + 1)
        return self.evaluate(node.alternate, depth + 1)

    def _eval_member(self, node: MemberAccess, depth: int) -> Any:
        obj = self.evaluate(node.object, depth + 1)
        prop = node.member

        if prop in FORBIDDEN_PROPERTIES:
            raise self._error(
                ExpressionErrorKind.FORBIDDEN_PROPERTY,
                f"Forbidden property: {prop}",
            )

        if is_nullish(obj):
            if self.context.null_safe_member:
                return UNDEFINED
            raise self._error(
                ExpressionErrorKind.NULL_DEREFERENCE,
                f"Cannot read property '{prop}' of {to_js_string(obj)}",
            )

        if isinstance(obj, Mapping):
            return obj[prop] if prop in obj else UNDEFINED

        if isinstance(obj, (str, list, tuple)):
            return len(obj) if prop == "length" else UNDEFINED

        if isinstance(obj, (bool, int, float)) or callable(obj) or prop.startswith("_"):
            return UNDEFINED

        return getattr(obj, prop, UNDEFINED)

    def _eval_call(self, node: FunctionCall, depth: int) -> Any:
        if not isinstance(node.callee, Identifier):
            raise self._error(
                ExpressionErrorKind.DISALLOWED_SYNTAX,
                "Only global function calls are allowed (no obj.method())",
            )

        name = node.callee.name
        fn = resolve_callable(name, self.context.data, self.context.global_env)
        if not callable(fn):
            raise self._error(
                ExpressionErrorKind.UNKNOWN_FUNCTION,
                f"Unknown function: {name}",
            )

        args = [self.evaluate(arg, depth + 1) for arg in node.arguments]

        try:
            return js_number(fn(*args))
        except ExpressionError:
            raise
        except Exception as e:
            raise self._error(
                ExpressionErrorKind.RUNTIME_TYPE_ERROR,
                f"Error calling {name}: {e}",
            ) from e

    def _eval_array(self, node: ArrayLiteral, depth: int) -> list[Any]:
        return [self.evaluate(element, depth + 1) for element in node.elements]

    def _eval_object(self, node: ObjectLiteral, depth: int) -> dict[str, Any]:
        result: dict[str, Any] = {}

        for prop in node.properties:
            if not isinstance(prop, ObjectProperty):
                raise self._error(
                    ExpressionErrorKind.DISALLOWED_SYNTAX,
                    f"Unsupported syntax: {type(prop).__name__}",
                )

            if prop.computed:
                key = to_js_string(self.evaluate(prop.key, depth + 1))
            elif isinstance(prop.key, Identifier):
                key = prop.key.name
            elif isinstance(prop.key, Literal):
                key = to_js_string(prop.key.value)
            else:
                raise self._error(
                    ExpressionErrorKind.DISALLOWED_SYNTAX,
                    "Invalid object property key",
                )

            result[key] = self.evaluate(prop.value, depth + 1)

        return result

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _to_number(self, value: Any) -> int | float:
        """Convert a value to a number (JavaScript's Number())."""
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float)):
            return js_number(value)
        if value is None:
            return 0
        if value is UNDEFINED:
            return math.nan
        if isinstance(value, str):
            return string_to_number(value)
        raise self._error(
            ExpressionErrorKind.RUNTIME_TYPE_ERROR,
            f"Cannot convert {_js_type(value)} to number",
        )

    def _add(self, left: Any, right: Any) -> Any:
        """Add two values, concatenating if either is a string."""
        if isinstance(left, str) or isinstance(right, str):
            return to_js_string(left) + to_js_string(right)
        return js_number(self._to_number(left) + self._to_number(right))

    def _divide(self, left: int | float, right: int | float) -> int | float:
        if right == 0:
            if left == 0 or math.isnan(left):
                return math.nan
            return math.copysign(math.inf, left) * math.copysign(1.0, right)
        if isinstance(left, int) and isinstance(right, int) and left % right == 0:
            return left // right
        return left / right

    def _modulo(self, left: int | float, right: int | float) -> int | float:
        """Remainder with the sign of the dividend."""
        if right == 0 or math.isnan(left) or math.isnan(right) or math.isinf(left):
            return math.nan
        if math.isinf(right):
            return left
        if isinstance(left, int) and isinstance(right, int):
            remainder = abs(left) % abs(right)
            return remainder if left >= 0 else -remainder
        return math.fmod(left, right)

    def _power(self, left: int | float, right: int | float) -> int | float:
        if (
            isinstance(left, int)
            and isinstance(right, int)
            and right >= 0
            and max(left.bit_length(), 1) * right <= MAX_EXACT_INT_BITS
        ):
            return js_number(left ** right)
        try:
            result = float(left) ** float(right)
        except ZeroDivisionError:
            return math.inf
        except OverflowError:
            odd_exponent = float(right).is_integer() and int(right) % 2 == 1
            return -math.inf if left < 0 and odd_exponent else math.inf
        if isinstance(result, complex):
            return math.nan
        return result

    def _strict_equals(self, left: Any, right: Any) -> bool:
        left_type, right_type = _js_type(left), _js_type(right)
        if left_type != right_type:
            return False
        if left_type in ("object", "function"):
            return left is right
        return left == right

    def _loose_equals(self, left: Any, right: Any) -> bool:
        if is_nullish(left) or is_nullish(right):
            return is_nullish(left) and is_nullish(right)

        left_type, right_type = _js_type(left), _js_type(right)
        if left_type == right_type:
            return self._strict_equals(left, right)

        primitives = ("number", "string", "boolean")
        if left_type in primitives and right_type in primitives:
            return self._to_number(left) == self._to_number(right)

        return False

    def _compare(self, op: str, left: Any, right: Any) -> bool:
        if isinstance(left, str) and isinstance(right, str):
            a: Any = left
            b: Any = right
        else:
            a = self._to_number(left)
            b = self._to_number(right)

        if op == "<":
            return a < b
        if op == "<=":
            return a <= b
        if op == ">":
            return a > b
        return a >= b
