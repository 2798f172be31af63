"""Compiled scene specification types.

The structural compiler produces a tree of ComponentSpec nodes plus an
ordered list of PhaseSpec. Every attribute value in that tree is either a
Literal (known at compile time) or a Dynamic expression, evaluated later by
the structure resolver against per-request data.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


# -----------------------------------------------------------------------------
# Attribute values
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    """An attribute value known at compile time."""

    value: Any


@dataclass(frozen=True)
class Dynamic:
    """An attribute value deferred to an expression evaluated at render time.

    Attributes:
        source: The expression text, exactly as written in the template
    """

    source: str


Attribute = Union[Literal, Dynamic]


# -----------------------------------------------------------------------------
# Component kinds and field whitelists
# -----------------------------------------------------------------------------


class ComponentKind(Enum):
    """Component kinds, named by their template tag."""

    ZSTACK = "zstack"
    VSTACK = "vstack"
    HSTACK = "hstack"
    IMAGE = "image"
    TEXT = "text"
    RECTANGLE = "rectangle"

    @property
    def is_container(self) -> bool:
        return self in CONTAINER_KINDS

    @classmethod
    def from_tag(cls, name: str) -> ComponentKind | None:
        """Look up a kind by tag name, or None if the tag is not a component."""
        try:
            return cls(name)
        except ValueError:
            return None


CONTAINER_KINDS = frozenset({
    ComponentKind.ZSTACK,
    ComponentKind.VSTACK,
    ComponentKind.HSTACK,
    ComponentKind.IMAGE,
})

TRANSITIONABLE_PROPERTIES = ("opacity", "scale", "rotate", "translate_x", "translate_y")

COMMON_FIELDS = (
    "id",
    "style",

    "inset",
    "left",
    "right",
    "top",
    "bottom",

    "width",
    "max_width",
    "min_width",

    "height",
    "max_height",
    "min_height",

    "aspect_ratio",

    "offset",
    "offset_x",
    "offset_y",

    "flex",
    "flex_grow",
    "flex_shrink",
    "flex_basis",

    "padding",
    "padding_x",
    "padding_y",
    "padding_left",
    "padding_right",
    "padding_top",
    "padding_bottom",

    "transform_origin",
    *TRANSITIONABLE_PROPERTIES,
)

CONTAINER_FIELDS = ("children",)

KIND_FIELDS: dict[ComponentKind, tuple[str, ...]] = {
    ComponentKind.ZSTACK: (),
    ComponentKind.VSTACK: ("gap", "align", "justify"),
    ComponentKind.HSTACK: ("gap", "align", "justify"),
    ComponentKind.IMAGE: ("src", "resize_mode", "image_displacement", "image_offset"),
    ComponentKind.TEXT: ("text",),
    ComponentKind.RECTANGLE: (),
}

PHASE_FIELDS = ("name",)

EFFECT_FIELDS: dict[str, tuple[str, ...]] = {
    "transition": ("component", "easing", "duration", "from", "to"),
    "override": ("component", *TRANSITIONABLE_PROPERTIES),
    "effect": ("name", "component", "duration"),
}

EASINGS = frozenset({"linear", "ease-in", "ease-out", "ease-in-out"})

CUSTOM_EFFECTS = frozenset({"typing"})

DEFAULT_TYPING_DURATION = 50


def component_fields(kind: ComponentKind) -> frozenset[str]:
    """All attribute names legal on a component of the given kind."""
    names = set(COMMON_FIELDS)
    if kind.is_container:
        names.update(CONTAINER_FIELDS)
    names.update(KIND_FIELDS[kind])
    return frozenset(names)


# -----------------------------------------------------------------------------
# Component tree
# -----------------------------------------------------------------------------


@dataclass
class ComponentSpec:
    """A node in the compiled component tree.

    Attributes:
        kind: Discriminant; never changes after construction
        id: Component identifier, referenced by phase effects
        fields: Whitelisted attributes for this kind
        children: Child components (containers only)
        cond: Expression source deciding whether the node is present at all
        line: Template source line, for diagnostics
    """

    kind: ComponentKind
    id: Attribute | None = None
    fields: dict[str, Attribute] = field(default_factory=dict)
    children: list[ComponentSpec] = field(default_factory=list)
    cond: str | None = None
    line: int | None = None

    @property
    def is_container(self) -> bool:
        return self.kind.is_container

    def to_dict(self) -> dict[str, Any]:
        """Nested mapping form, still carrying Literal/Dynamic values."""
        result: dict[str, Any] = {"kind": self.kind.value}
        if self.cond is not None:
            result["cond"] = self.cond
        if self.id is not None:
            result["id"] = self.id
        result.update(self.fields)
        if self.is_container:
            result["children"] = [child.to_dict() for child in self.children]
        return result


# -----------------------------------------------------------------------------
# Phases and effects
# -----------------------------------------------------------------------------


@dataclass
class TransitionSpec:
    """Animate transitionable properties of a component from one set of values to another."""

    component: str
    duration: Attribute | None = None
    easing: Attribute | None = None
    from_: Attribute | None = None
    to: Attribute | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": "transition", "component": self.component}
        for key, value in (
            ("duration", self.duration),
            ("easing", self.easing),
            ("from", self.from_),
            ("to", self.to),
        ):
            if value is not None:
                result[key] = value
        return result


@dataclass
class OverrideSpec:
    """Set transitionable properties of a component directly."""

    component: str
    values: dict[str, Attribute] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "override", "component": self.component, **self.values}


@dataclass
class TypingEffectSpec:
    """Reveal a text component one character at a time."""

    component: str
    duration: int | float = DEFAULT_TYPING_DURATION
    name: str = "typing"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "effect",
            "name": self.name,
            "component": self.component,
            "duration": self.duration,
        }


CustomEffectSpec = TypingEffectSpec

EffectSpec = Union[TransitionSpec, OverrideSpec, CustomEffectSpec]


@dataclass
class PhaseSpec:
    """A named, ordered collection of animation effects."""

    name: str
    effects: list[EffectSpec] = field(default_factory=list)
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "effects": [effect.to_dict() for effect in self.effects],
        }


# -----------------------------------------------------------------------------
# Serialization
# -----------------------------------------------------------------------------


def to_json_compatible(value: Any) -> Any:
    """Convert a spec tree into JSON-serializable data.

    Dynamic values become `{"$": source}` markers, Literal values are
    unwrapped and binary buffers are base64 encoded.
    """
    if isinstance(value, Dynamic):
        return {"$": value.source}
    if isinstance(value, Literal):
        return to_json_compatible(value.value)
    if hasattr(value, "to_dict") and not isinstance(value, type):
        return to_json_compatible(value.to_dict())
    if isinstance(value, dict):
        return {str(k): to_json_compatible(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_compatible(item) for item in value]
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value
