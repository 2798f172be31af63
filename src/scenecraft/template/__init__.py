"""Template AST node types.

SceneTemplate lives in `scenecraft.template.scene` and document loading in
`scenecraft.template.loader`; both depend on the compiler, which itself
imports these node types.
"""

from scenecraft.template.nodes import (
    Block,
    Comment,
    Conditional,
    Mixin,
    Node,
    Tag,
    TagAttribute,
    Text,
    UnknownNode,
    block_from_dict,
    node_from_dict,
)

__all__ = [
    "Block",
    "Comment",
    "Conditional",
    "Mixin",
    "Node",
    "Tag",
    "TagAttribute",
    "Text",
    "UnknownNode",
    "block_from_dict",
    "node_from_dict",
]
