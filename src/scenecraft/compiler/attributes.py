"""Classify raw tag attribute text into Literal or Dynamic values."""

import json
import re
from typing import Any, Iterable

from scenecraft.errors import CompileError, CompileErrorKind
from scenecraft.specification import Attribute, Dynamic, Literal
from scenecraft.template.nodes import TagAttribute

NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")
SINGLE_QUOTED_PATTERN = re.compile(r"^'(?:[^'\\]|\\.)*'$", re.DOTALL)
DOUBLE_QUOTED_PATTERN = re.compile(r'^"(?:[^"\\]|\\.)*"$', re.DOTALL)


def classify_value(value: Any, line: int | None = None) -> Attribute:
    """Turn one raw attribute value into a Literal or a Dynamic reference.

    Recognition order for string values:
    1. `true` / `false`            -> boolean
    2. signed decimal number       -> int or float
    3. `'single quoted'`           -> string, `\\'` unescaped
    4. `"double quoted"`           -> string, decoded as a JSON string
    5. anything else               -> Dynamic(value), text kept verbatim

    Non-string values (e.g. `True` for a bare attribute) pass through as
    literals.
    """
    if not isinstance(value, str):
        return Literal(value)

    if value in ("true", "false"):
        return Literal(value == "true")

    if NUMBER_PATTERN.fullmatch(value):
        # integers past the double range are read as floats (Infinity)
        if "." in value or len(value.lstrip("-")) > 308:
            return Literal(float(value))
        return Literal(int(value))

    if SINGLE_QUOTED_PATTERN.fullmatch(value):
        return Literal(value[1:-1].replace("\\'", "'"))

    if DOUBLE_QUOTED_PATTERN.fullmatch(value):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError as e:
            raise CompileError(
                CompileErrorKind.INVALID_ATTRIBUTE_TYPE,
                f"Invalid quoted string {value}: {e.msg}",
                line,
            ) from e
        return Literal(decoded)

    return Dynamic(value)


def extract_attributes(
    attrs: Iterable[TagAttribute],
    allowed: Iterable[str],
    line: int | None = None,
) -> dict[str, Attribute]:
    """Classify a tag's attributes, keeping only whitelisted names.

    Unknown names are dropped silently; a later attribute with the same name
    replaces an earlier one.
    """
    allowed_names = frozenset(allowed)
    result: dict[str, Attribute] = {}
    for attr in attrs:
        result[attr.name] = classify_value(attr.value, attr.line or line)

    return {name: value for name, value in result.items() if name in allowed_names}
