"""Structural compiler: template AST -> component tree + animation phases.

Walks the tagged-tree AST produced by the markup parser and emits:
- a ComponentSpec tree rooted at a zstack, with Dynamic attribute values and
  `cond` markers left in place for the structure resolver
- the ordered list of PhaseSpec declared by `phase` tags

Mixins are expanded in place and conditionals are compiled into sibling
branches guarded by `cond`; nothing is evaluated here.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from scenecraft.compiler.attributes import extract_attributes
from scenecraft.errors import CompileError, CompileErrorKind
from scenecraft.specification import (
    CUSTOM_EFFECTS,
    DEFAULT_TYPING_DURATION,
    EASINGS,
    EFFECT_FIELDS,
    PHASE_FIELDS,
    TRANSITIONABLE_PROPERTIES,
    Attribute,
    ComponentKind,
    ComponentSpec,
    EffectSpec,
    Literal,
    OverrideSpec,
    PhaseSpec,
    TransitionSpec,
    TypingEffectSpec,
    component_fields,
)
from scenecraft.template.nodes import (
    Block,
    Comment,
    Conditional,
    Mixin,
    Node,
    Tag,
    Text,
)

logger = logging.getLogger(__name__)

PHASE_TAG = "phase"
DEFAULT_PHASE_NAME = "main"


@dataclass
class CompileResult:
    """Output of one template compile."""

    root: ComponentSpec
    phases: list[PhaseSpec] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": self.root.to_dict(),
            "phases": [phase.to_dict() for phase in self.phases],
        }


def _guard(components: list[ComponentSpec], test: str) -> None:
    """Make every component in a branch conditional on test."""
    for component in components:
        if component.cond is None:
            component.cond = test
        else:
            component.cond = f"({test}) && ({component.cond})"


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _unknown_node(node: Any) -> CompileError:
    node_type = getattr(node, "type", type(node).__name__)
    return CompileError(
        CompileErrorKind.UNKNOWN_NODE_KIND,
        f"Unknown node type: {node_type}",
        getattr(node, "line", None),
    )


def _unknown_tag(tag: Tag) -> CompileError:
    return CompileError(
        CompileErrorKind.UNKNOWN_COMPONENT_KIND,
        f"Unknown tag: {tag.name}",
        tag.line,
    )


def _unknown_mixin(node: Mixin) -> CompileError:
    return CompileError(
        CompileErrorKind.UNKNOWN_MIXIN,
        f"Unknown mixin: {node.name}",
        node.line,
    )


class StructureCompiler:
    """Compiles a template AST into a ComponentSpec tree and PhaseSpec list.

    The mixin table and collected phases belong to this instance and are
    reset by every call to `compile`.

    Usage:
        result = StructureCompiler().compile(block)
        result.root      # zstack ComponentSpec
        result.phases    # [PhaseSpec, ...]
    """

    def __init__(self) -> None:
        self.mixins: dict[str, Block] = {}
        self.phases: list[PhaseSpec] = []
        self._expanding: list[str] = []

    def compile(self, block: Block) -> CompileResult:
        """Compile a template's top-level block."""
        self.mixins = {}
        self.phases = []
        self._expanding = []

        root = ComponentSpec(kind=ComponentKind.ZSTACK, line=block.line)
        root.children = self._visit_block(block, root)

        phases = list(self.phases)
        if not phases:
            phases.append(PhaseSpec(name=DEFAULT_PHASE_NAME))

        logger.debug(
            "Compiled template: %d top-level components, %d phases",
            len(root.children),
            len(phases),
        )
        return CompileResult(root=root, phases=phases)

    # -------------------------------------------------------------------------
    # Node dispatch
    # -------------------------------------------------------------------------

    def _visit(self, node: Node, parent: ComponentSpec) -> list[ComponentSpec]:
        """Compile one node into the components it contributes to parent."""
        if isinstance(node, Block):
            return self._visit_block(node, parent)
        if isinstance(node, Tag):
            return self._visit_tag(node)
        if isinstance(node, Mixin):
            if node.call:
                return self._visit_mixin_call(node, parent)
            self._declare_mixin(node)
            return []
        if isinstance(node, Conditional):
            return self._visit_conditional(node, parent)
        if isinstance(node, (Text, Comment)):
            return []
        raise _unknown_node(node)

    def _visit_block(self, block: Block, parent: ComponentSpec) -> list[ComponentSpec]:
        # Mixin declarations are hoisted within their block
        rest: list[Node] = []
        for node in block.nodes:
            if isinstance(node, Mixin) and not node.call:
                self._declare_mixin(node)
            else:
                rest.append(node)

        components: list[ComponentSpec] = []
        for node in rest:
            components.extend(self._visit(node, parent))
        return components

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    def _visit_tag(self, tag: Tag) -> list[ComponentSpec]:
        if tag.name == PHASE_TAG:
            self._visit_phase(tag)
            return []

        kind = ComponentKind.from_tag(tag.name)
        if kind is None:
            raise _unknown_tag(tag)

        fields = extract_attributes(tag.attrs, component_fields(kind), tag.line)
        component_id = fields.pop("id", None)
        # Children always come from the tag's block
        fields.pop("children", None)

        component = ComponentSpec(kind=kind, id=component_id, fields=fields, line=tag.line)

        if kind.is_container:
            component.children = self._visit_block(tag.block, component)
        else:
            self._check_leaf_block(tag)

        return [component]

    def _check_leaf_block(self, tag: Tag) -> None:
        """Validate content nested under a leaf tag, which is then ignored."""
        if self._scan_leaf_content(tag.block):
            logger.warning(
                "%s: %s cannot have children; ignoring nested content",
                tag.line,
                tag.name,
            )

    def _scan_leaf_content(self, block: Block) -> int:
        """Count the ignored nodes under a leaf; raise on nodes that are never valid."""
        count = 0
        for node in block.nodes:
            if isinstance(node, (Text, Comment)):
                continue
            if isinstance(node, Conditional):
                raise CompileError(
                    CompileErrorKind.INVALID_CONDITIONAL,
                    "Conditionals can only be used inside container components.",
                    node.line,
                )
            if isinstance(node, Block):
                count += self._scan_leaf_content(node)
            elif isinstance(node, Tag):
                if node.name != PHASE_TAG and ComponentKind.from_tag(node.name) is None:
                    raise _unknown_tag(node)
                count += 1 + self._scan_leaf_content(node.block)
            elif isinstance(node, Mixin):
                if node.call and node.name not in self.mixins:
                    raise _unknown_mixin(node)
                count += 1
            else:
                raise _unknown_node(node)
        return count

    # -------------------------------------------------------------------------
    # Mixins
    # -------------------------------------------------------------------------

    def _declare_mixin(self, node: Mixin) -> None:
        if node.name in self.mixins:
            logger.debug("%s: mixin '%s' redeclared", node.line, node.name)
        self.mixins[node.name] = node.block or Block(line=node.line)

    def _visit_mixin_call(self, node: Mixin, parent: ComponentSpec) -> list[ComponentSpec]:
        body = self.mixins.get(node.name)
        if body is None:
            raise _unknown_mixin(node)
        if node.name in self._expanding:
            chain = " -> ".join([*self._expanding, node.name])
            raise CompileError(
                CompileErrorKind.RECURSIVE_MIXIN,
                f"Recursive mixin call: {chain}",
                node.line,
            )
        if node.args:
            logger.warning(
                "%s: mixin '%s' called with arguments (%s); mixin arguments are not supported and were ignored",
                node.line,
                node.name,
                node.args,
            )

        self._expanding.append(node.name)
        try:
            return self._visit_block(body, parent)
        finally:
            self._expanding.pop()

    # -------------------------------------------------------------------------
    # Conditionals
    # -------------------------------------------------------------------------

    def _visit_conditional(self, node: Conditional, parent: ComponentSpec) -> list[ComponentSpec]:
        if not parent.is_container:
            raise CompileError(
                CompileErrorKind.INVALID_CONDITIONAL,
                "Conditionals can only be used inside container components.",
                node.line,
            )

        consequent = self._visit_block(node.consequent, parent)
        _guard(consequent, node.test)

        if node.alternate is None:
            return consequent

        if isinstance(node.alternate, Conditional):
            # else if
            alternate = self._visit_conditional(node.alternate, parent)
        else:
            alternate = self._visit(node.alternate, parent)
        _guard(alternate, f"!({node.test})")

        return consequent + alternate

    # -------------------------------------------------------------------------
    # Phases and effects
    # -------------------------------------------------------------------------

    def _visit_phase(self, tag: Tag) -> None:
        attrs = extract_attributes(tag.attrs, PHASE_FIELDS, tag.line)
        name = self._require_string(attrs, "name", tag)
        if not name:
            raise CompileError(
                CompileErrorKind.INVALID_ATTRIBUTE_TYPE,
                "phase() name must not be empty",
                tag.line,
                attribute="name",
            )

        effect_tags: list[Tag] = []
        for child in tag.block.nodes:
            if isinstance(child, (Text, Comment)):
                continue
            if not isinstance(child, Tag) or child.name not in EFFECT_FIELDS:
                label = child.name if isinstance(child, Tag) else type(child).__name__
                raise CompileError(
                    CompileErrorKind.INVALID_PHASE_BODY,
                    f"Unknown animation in phase '{name}': {label}",
                    getattr(child, "line", tag.line),
                )
            effect_tags.append(child)

        if not effect_tags:
            raise CompileError(
                CompileErrorKind.INVALID_PHASE_BODY,
                f"phase() '{name}' requires a block",
                tag.line,
            )

        effects = [self._visit_effect(child) for child in effect_tags]
        self.phases.append(PhaseSpec(name=name, effects=effects, line=tag.line))

    def _visit_effect(self, tag: Tag) -> EffectSpec:
        attrs = extract_attributes(tag.attrs, EFFECT_FIELDS[tag.name], tag.line)
        if tag.name == "transition":
            return self._visit_transition(tag, attrs)
        if tag.name == "override":
            return self._visit_override(tag, attrs)
        return self._visit_custom_effect(tag, attrs)

    def _visit_transition(self, tag: Tag, attrs: dict[str, Attribute]) -> TransitionSpec:
        component = self._require_string(attrs, "component", tag)

        duration = attrs.get("duration")
        if isinstance(duration, Literal) and not _is_positive_number(duration.value):
            raise self._invalid(tag, "duration", duration.value)

        easing = attrs.get("easing")
        if isinstance(easing, Literal) and easing.value not in EASINGS:
            raise self._invalid(tag, "easing", easing.value)

        for key in ("from", "to"):
            value = attrs.get(key)
            if isinstance(value, Literal) and not isinstance(value.value, dict):
                raise self._invalid(tag, key, value.value)

        return TransitionSpec(
            component=component,
            duration=duration,
            easing=easing,
            from_=attrs.get("from"),
            to=attrs.get("to"),
        )

    def _visit_override(self, tag: Tag, attrs: dict[str, Attribute]) -> OverrideSpec:
        component = self._require_string(attrs, "component", tag)

        values: dict[str, Attribute] = {}
        for key in TRANSITIONABLE_PROPERTIES:
            value = attrs.get(key)
            if value is None:
                continue
            if isinstance(value, Literal) and (
                isinstance(value.value, bool) or not isinstance(value.value, (int, float))
            ):
                raise self._invalid(tag, key, value.value)
            values[key] = value

        return OverrideSpec(component=component, values=values)

    def _visit_custom_effect(self, tag: Tag, attrs: dict[str, Attribute]) -> TypingEffectSpec:
        name = self._require_string(attrs, "name", tag)
        component = self._require_string(attrs, "component", tag)

        if name not in CUSTOM_EFFECTS:
            raise CompileError(
                CompileErrorKind.UNKNOWN_EFFECT,
                f"Unknown effect: {name}",
                tag.line,
                attribute="name",
            )

        duration = attrs.get("duration", Literal(DEFAULT_TYPING_DURATION))
        if not isinstance(duration, Literal) or not _is_positive_number(duration.value):
            shown = duration.value if isinstance(duration, Literal) else duration.source
            raise CompileError(
                CompileErrorKind.INVALID_ATTRIBUTE_TYPE,
                f"Invalid typing duration: {shown}",
                tag.line,
                attribute="duration",
            )

        return TypingEffectSpec(component=component, duration=duration.value)

    # -------------------------------------------------------------------------
    # Attribute helpers
    # -------------------------------------------------------------------------

    def _require_string(self, attrs: dict[str, Attribute], key: str, tag: Tag) -> str:
        value = attrs.get(key)
        if value is None:
            raise CompileError(
                CompileErrorKind.MISSING_REQUIRED_ATTRIBUTE,
                f"{tag.name}() requires a {key} attribute",
                tag.line,
                attribute=key,
            )
        if not isinstance(value, Literal) or not isinstance(value.value, str):
            shown = value.value if isinstance(value, Literal) else value.source
            raise self._invalid(tag, key, shown)
        return value.value

    def _invalid(self, tag: Tag, key: str, value: Any) -> CompileError:
        return CompileError(
            CompileErrorKind.INVALID_ATTRIBUTE_TYPE,
            f"Invalid {tag.name} {key}: {value!r}",
            tag.line,
            attribute=key,
        )


def compile_template(block: Block) -> CompileResult:
    """Compile a template AST with a fresh compiler."""
    return StructureCompiler().compile(block)
