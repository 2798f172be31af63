"""Structure resolver.

Turns a compiled spec tree into concrete data for one render request:
Dynamic values are replaced by their evaluated result and nodes whose
`cond` expression is falsy are pruned.

Pruning is deliberately asymmetric:
- a conditional mapping held directly in a field becomes None
- a conditional mapping inside a sequence is omitted from the sequence

Both mean "not present" to the layout engine.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from scenecraft.errors import ExpressionError
from scenecraft.expressions.environment import GLOBAL_ENVIRONMENT
from scenecraft.expressions.evaluator import UNDEFINED, is_truthy
from scenecraft.expressions.sandbox import Sandbox, SandboxOptions
from scenecraft.specification import Dynamic, Literal

logger = logging.getLogger(__name__)

COND_KEY = "cond"

ExpressionObserver = Callable[[str, Any], None]


def _is_spec(value: Any) -> bool:
    return hasattr(value, "to_dict") and not isinstance(value, type)


def _plain(value: Any) -> Any:
    """Replace the undefined sentinel with None in an evaluated value."""
    if value is UNDEFINED:
        return None
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


class StructureResolver:
    """Resolves spec trees against one data environment.

    Owns a single Sandbox, so every distinct expression is validated once per
    resolver no matter how often the tree references it. Create one resolver
    per render request; resolvers are not shared between requests.
    """

    def __init__(
        self,
        data: Mapping[str, Any],
        options: SandboxOptions | None = None,
        on_expression: ExpressionObserver | None = None,
        global_env: Mapping[str, Any] = GLOBAL_ENVIRONMENT,
    ):
        self.sandbox = Sandbox(data, options or SandboxOptions(), global_env)
        self.on_expression = on_expression

    def resolve(self, value: Any) -> Any:
        """Resolve any spec object, mapping, sequence or scalar."""
        if isinstance(value, Dynamic):
            return self._evaluate(value.source)
        if isinstance(value, Literal):
            return value.value
        if _is_spec(value):
            return self._resolve_spec(value)
        if isinstance(value, Mapping):
            return self._resolve_mapping(value)
        if isinstance(value, (list, tuple)):
            return self._resolve_sequence(value)
        return value

    def _resolve_spec(self, spec: Any) -> Any:
        mapping = spec.to_dict()
        if "children" in mapping:
            # keep child specs so errors report the innermost line
            mapping["children"] = spec.children
        try:
            return self.resolve(mapping)
        except ExpressionError as e:
            if e.line is None:
                e.line = getattr(spec, "line", None)
            raise

    def _resolve_mapping(self, mapping: Mapping[str, Any]) -> dict[str, Any] | None:
        if COND_KEY in mapping and not self._test(mapping[COND_KEY]):
            return None
        return {
            key: self.resolve(item)
            for key, item in mapping.items()
            if key != COND_KEY
        }

    def _resolve_sequence(self, items: Any) -> list[Any]:
        result: list[Any] = []
        for item in items:
            resolved = self.resolve(item)
            if resolved is None and (_is_spec(item) or isinstance(item, Mapping)):
                # pruned by a falsy cond
                continue
            result.append(resolved)
        return result

    def _test(self, cond: Any) -> bool:
        if isinstance(cond, str):
            return is_truthy(self.sandbox.evaluate(cond))
        if isinstance(cond, Dynamic):
            return is_truthy(self.sandbox.evaluate(cond.source))
        if isinstance(cond, Literal):
            return is_truthy(cond.value)
        return is_truthy(cond)

    def _evaluate(self, source: str) -> Any:
        value = self.sandbox.evaluate(source)
        if self.on_expression is not None:
            self.on_expression(source, value)
        return _plain(value)


def resolve(
    tree: Any,
    data: Mapping[str, Any],
    *,
    options: SandboxOptions | None = None,
    on_expression: ExpressionObserver | None = None,
) -> Any:
    """Resolve a compiled tree against a data environment.

    Example:
        root = resolve(result.root, {"name": "Hi"})
        # {"kind": "zstack", "children": [{"kind": "text", "text": "Hi"}]}
    """
    logger.debug("Resolving %s against %d data keys", type(tree).__name__, len(data))
    return StructureResolver(data, options, on_expression).resolve(tree)
