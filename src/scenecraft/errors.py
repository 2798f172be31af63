"""Error types for SceneCraft.

Two families of errors exist:
- CompileError: raised while compiling a template AST into a spec tree.
  Always fatal to that template build and always carries a source line.
- ExpressionError: raised while parsing, validating or evaluating a single
  data-binding expression. Fatal to the render request that triggered it.
"""

from enum import Enum
from typing import Any


class CompileErrorKind(Enum):
    """Machine-readable codes for structural compile failures."""

    UNKNOWN_NODE_KIND = "unknown_node_kind"
    UNKNOWN_COMPONENT_KIND = "unknown_component_kind"
    UNKNOWN_MIXIN = "unknown_mixin"
    RECURSIVE_MIXIN = "recursive_mixin"
    INVALID_PHASE_BODY = "invalid_phase_body"
    INVALID_CONDITIONAL = "invalid_conditional"
    UNKNOWN_EFFECT = "unknown_effect"
    MISSING_REQUIRED_ATTRIBUTE = "missing_required_attribute"
    INVALID_ATTRIBUTE_TYPE = "invalid_attribute_type"


class ExpressionErrorKind(Enum):
    """Machine-readable codes for expression failures."""

    PARSE_ERROR = "parse_error"
    TOO_LONG = "too_long"
    TOO_DEEP = "too_deep"
    TOO_COMPLEX = "too_complex"
    DISALLOWED_OPERATOR = "disallowed_operator"
    DISALLOWED_SYNTAX = "disallowed_syntax"
    FORBIDDEN_PROPERTY = "forbidden_property"
    COMPUTED_MEMBER_NOT_ALLOWED = "computed_member_not_allowed"
    UNKNOWN_FUNCTION = "unknown_function"
    NULL_DEREFERENCE = "null_dereference"
    RUNTIME_TYPE_ERROR = "runtime_type_error"


class CompileError(Exception):
    """Error during structural compilation of a template.

    Attributes:
        kind: What went wrong
        line: Source line of the offending AST node
        detail: The message without the line prefix
        attribute: Name of the attribute involved, if any
    """

    def __init__(
        self,
        kind: CompileErrorKind,
        message: str,
        line: int | None = None,
        attribute: str | None = None,
    ):
        self.kind = kind
        self.line = line
        self.detail = message
        self.attribute = attribute
        prefix = f"{line}: " if line is not None else ""
        super().__init__(f"{prefix}{message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.detail,
            "line": self.line,
            "attribute": self.attribute,
        }


class ExpressionError(Exception):
    """Error while validating or evaluating an expression.

    Attributes:
        kind: What went wrong
        source: The expression text, when known
        line: Source line of the template node referencing the expression
    """

    def __init__(
        self,
        kind: ExpressionErrorKind,
        message: str,
        source: str | None = None,
        line: int | None = None,
    ):
        self.kind = kind
        self.detail = message
        self.source = source
        self.line = line
        super().__init__(message)

    def __str__(self) -> str:
        text = self.detail
        if self.source is not None:
            text = f"{text} in expression {self.source!r}"
        if self.line is not None:
            text = f"{self.line}: {text}"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.detail,
            "source": self.source,
            "line": self.line,
        }
