"""Expression sandbox: bounded parse, whitelist validation, interpretation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from scenecraft.errors import ExpressionError, ExpressionErrorKind
from scenecraft.expressions.environment import GLOBAL_ENVIRONMENT
from scenecraft.expressions.evaluator import EvaluationContext, Evaluator
from scenecraft.expressions.parser import ASTNode, parse_cached
from scenecraft.expressions.validator import Validator

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class SandboxOptions:
    """Resource bounds and behavior switches for expression evaluation.

    Attributes:
        max_length: Maximum expression source length in characters
        max_depth: Maximum expression tree depth (validation and evaluation)
        max_nodes: Maximum number of expression tree nodes
        null_safe_member: Member access on null/undefined yields UNDEFINED
            instead of raising NULL_DEREFERENCE
    """

    max_length: int = 10_000
    max_depth: int = 200
    max_nodes: int = 5_000
    null_safe_member: bool = True

    @classmethod
    def from_env(cls) -> SandboxOptions:
        """Create options from environment variables.

        Recognized variables (all optional):
        - SCENECRAFT_MAX_EXPRESSION_LENGTH
        - SCENECRAFT_MAX_EXPRESSION_DEPTH
        - SCENECRAFT_MAX_EXPRESSION_NODES
        - SCENECRAFT_NULL_SAFE_MEMBER (true/false)
        """
        defaults = cls()
        null_safe = os.environ.get("SCENECRAFT_NULL_SAFE_MEMBER")
        return cls(
            max_length=_env_int("SCENECRAFT_MAX_EXPRESSION_LENGTH", defaults.max_length),
            max_depth=_env_int("SCENECRAFT_MAX_EXPRESSION_DEPTH", defaults.max_depth),
            max_nodes=_env_int("SCENECRAFT_MAX_EXPRESSION_NODES", defaults.max_nodes),
            null_safe_member=(
                defaults.null_safe_member
                if null_safe is None
                else null_safe.strip().lower() in _TRUE_VALUES
            ),
        )


@dataclass
class Sandbox:
    """Evaluates expression text against one data environment.

    A sandbox is created per render request and owns a cache of the
    expressions it has already validated, so each distinct expression text is
    validated once and then evaluated as often as the template references it.

    Usage:
        sandbox = Sandbox({"name": "Hi"})
        sandbox.evaluate("name + '!'")  # "Hi!"
    """

    data: Mapping[str, Any] = field(default_factory=dict)
    options: SandboxOptions = field(default_factory=SandboxOptions)
    global_env: Mapping[str, Any] = field(default_factory=lambda: GLOBAL_ENVIRONMENT)
    _validated: dict[str, ASTNode] = field(default_factory=dict, init=False, repr=False)

    def compile(self, source: str) -> ASTNode:
        """Parse and validate an expression, returning its AST."""
        cached = self._validated.get(source)
        if cached is not None:
            return cached

        if len(source) > self.options.max_length:
            raise ExpressionError(
                ExpressionErrorKind.TOO_LONG,
                f"Expression too long (>{self.options.max_length})",
                source,
            )

        ast = parse_cached(source, self.options.max_depth)

        validator = Validator(
            self.data,
            self.global_env,
            max_depth=self.options.max_depth,
            max_nodes=self.options.max_nodes,
            source=source,
        )
        validator.validate(ast)

        self._validated[source] = ast
        return ast

    def evaluate(self, source: str) -> Any:
        """Validate (once) and evaluate an expression."""
        ast = self.compile(source)
        ctx = EvaluationContext(
            data=self.data,
            global_env=self.global_env,
            null_safe_member=self.options.null_safe_member,
            max_depth=self.options.max_depth,
            source=source,
        )
        return Evaluator(ctx).evaluate(ast)


def evaluate(
    expression: str,
    data: Mapping[str, Any] | None = None,
    options: SandboxOptions | None = None,
) -> Any:
    """Evaluate a single expression string against a data environment.

    Example:
        result = evaluate("max(width, 100) / 2", {"width": 320})
        # result = 160
    """
    return Sandbox(data or {}, options or SandboxOptions()).evaluate(expression)
