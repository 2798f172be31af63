"""Template AST node types.

The markup parser (external to SceneCraft) turns template source into a
tagged tree. These dataclasses are the shape the structural compiler
consumes; `node_from_dict` maps the parser's JSON output onto them.

Node kinds the compiler understands: Block, Tag, Mixin (declaration or call),
Conditional, Text and Comment. Anything else arrives as UnknownNode and is
rejected at compile time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass
class TagAttribute:
    """A single `name=value` attribute on a tag.

    `value` is the raw attribute text (e.g. `'title'`, `500`, `user.name`),
    or a non-string value such as `True` for bare boolean attributes.
    """

    name: str
    value: Any
    line: int = 0


@dataclass
class Block:
    """An ordered list of nodes."""

    nodes: list[Node] = field(default_factory=list)
    line: int = 0


@dataclass
class Tag:
    """A tag such as `text(text=title)` with an optional nested block."""

    name: str
    attrs: list[TagAttribute] = field(default_factory=list)
    block: Block = field(default_factory=Block)
    line: int = 0


@dataclass
class Mixin:
    """A mixin declaration (`call=False`) or invocation (`call=True`)."""

    name: str
    call: bool
    block: Block | None = None
    args: str | None = None
    line: int = 0


@dataclass
class Conditional:
    """An if/else node. `alternate` is a Block, or a Conditional for else-if."""

    test: str
    consequent: Block
    alternate: Node | None = None
    line: int = 0


@dataclass
class Text:
    """Plain text content; carries no structure."""

    value: str = ""
    line: int = 0


@dataclass
class Comment:
    """A template comment."""

    value: str = ""
    line: int = 0


@dataclass
class UnknownNode:
    """A node of a type the compiler does not handle."""

    type: str
    line: int = 0


Node = Union[Block, Tag, Mixin, Conditional, Text, Comment, UnknownNode]


# -----------------------------------------------------------------------------
# Conversion from parser JSON
# -----------------------------------------------------------------------------


def _line(data: dict[str, Any]) -> int:
    return int(data.get("line") or 0)


def block_from_dict(data: dict[str, Any] | None) -> Block:
    """Build a Block from its JSON form; a missing block is empty."""
    if data is None:
        return Block()
    return Block(
        nodes=[node_from_dict(child) for child in data.get("nodes", [])],
        line=_line(data),
    )


def node_from_dict(data: dict[str, Any]) -> Node:
    """Build an AST node from the markup parser's JSON form.

    The JSON form uses a `type` discriminant (`Block`, `Tag`, `Mixin`,
    `Conditional`, `Text`, `Comment`, `BlockComment`), the same shape as
    pug's AST. Unrecognized types become UnknownNode.
    """
    node_type = data.get("type")

    if node_type in ("Block", "NamedBlock"):
        return block_from_dict(data)

    if node_type == "Tag":
        return Tag(
            name=data["name"],
            attrs=[
                TagAttribute(name=attr["name"], value=attr.get("val"), line=_line(attr))
                for attr in data.get("attrs", [])
            ],
            block=block_from_dict(data.get("block")),
            line=_line(data),
        )

    if node_type == "Mixin":
        return Mixin(
            name=data["name"],
            call=bool(data.get("call", False)),
            block=block_from_dict(data["block"]) if data.get("block") else None,
            args=data.get("args"),
            line=_line(data),
        )

    if node_type == "Conditional":
        alternate_data = data.get("alternate")
        alternate = node_from_dict(alternate_data) if alternate_data is not None else None
        return Conditional(
            test=data["test"],
            consequent=block_from_dict(data.get("consequent")),
            alternate=alternate,
            line=_line(data),
        )

    if node_type == "Text":
        return Text(value=data.get("val", ""), line=_line(data))

    if node_type in ("Comment", "BlockComment"):
        return Comment(value=data.get("val", ""), line=_line(data))

    return UnknownNode(type=str(node_type), line=_line(data))
