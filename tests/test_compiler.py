"""Tests for the structural compiler."""

import logging

import pytest

from scenecraft.compiler import CompileResult, StructureCompiler, compile_template
from scenecraft.errors import CompileError, CompileErrorKind
from scenecraft.specification import (
    ComponentKind,
    Dynamic,
    Literal,
    OverrideSpec,
    PhaseSpec,
    TransitionSpec,
    TypingEffectSpec,
)
from scenecraft.template.nodes import (
    Block,
    Comment,
    Conditional,
    Mixin,
    Tag,
    TagAttribute,
    Text,
    UnknownNode,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def block(*nodes, line=1) -> Block:
    return Block(list(nodes), line)


def tag(tag_name, *children, line=1, **attrs) -> Tag:
    return Tag(
        tag_name,
        [TagAttribute(key, value, line) for key, value in attrs.items()],
        Block(list(children), line),
        line,
    )


def declare(name, *children, line=1) -> Mixin:
    return Mixin(name, call=False, block=block(*children), line=line)


def call(name, args=None, line=1) -> Mixin:
    return Mixin(name, call=True, args=args, line=line)


def compile_error(root: Block) -> CompileError:
    with pytest.raises(CompileError) as exc_info:
        compile_template(root)
    return exc_info.value


def intro_phase() -> Tag:
    return tag(
        "phase",
        tag(
            "transition",
            component='"title"',
            duration="500",
            easing='"ease-in"',
            **{"from": "{opacity:0}", "to": "{opacity:1}"},
        ),
        name='"intro"',
    )


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


class TestComponents:
    def test_root_is_zstack(self):
        result = compile_template(block(tag("text", text="title")))

        assert isinstance(result, CompileResult)
        assert result.root.kind == ComponentKind.ZSTACK
        assert len(result.root.children) == 1

    def test_text_field_is_dynamic(self):
        result = compile_template(block(tag("text", text="title")))
        text = result.root.children[0]

        assert text.kind == ComponentKind.TEXT
        assert text.fields == {"text": Dynamic("title")}

    def test_quoted_field_is_literal(self):
        result = compile_template(block(tag("text", text="'Hello'")))

        assert result.root.children[0].fields["text"] == Literal("Hello")

    def test_id_is_extracted(self):
        result = compile_template(block(tag("text", id="'title'", text="name")))
        text = result.root.children[0]

        assert text.id == Literal("title")
        assert "id" not in text.fields

    def test_unknown_attributes_are_dropped(self):
        result = compile_template(
            block(
                tag("text", text="'a'", color="'red'", gap="4"),
                tag("vstack", gap="4", align="'center'"),
            )
        )
        text, vstack = result.root.children

        assert set(text.fields) == {"text"}
        assert vstack.fields == {"gap": Literal(4), "align": Literal("center")}

    def test_common_fields_allowed_everywhere(self):
        result = compile_template(block(tag("rectangle", width="100", opacity="0.5", left="x")))

        assert result.root.children[0].fields == {
            "width": Literal(100),
            "opacity": Literal(0.5),
            "left": Dynamic("x"),
        }

    def test_children_attribute_is_ignored(self):
        result = compile_template(block(tag("vstack", tag("text"), children="items")))
        vstack = result.root.children[0]

        assert "children" not in vstack.fields
        assert len(vstack.children) == 1

    def test_nested_containers(self):
        result = compile_template(
            block(
                tag(
                    "vstack",
                    tag("hstack", tag("image", src="logo"), tag("text", text="'a'")),
                    tag("rectangle"),
                )
            )
        )
        vstack = result.root.children[0]
        hstack = vstack.children[0]

        assert [c.kind for c in vstack.children] == [ComponentKind.HSTACK, ComponentKind.RECTANGLE]
        assert [c.kind for c in hstack.children] == [ComponentKind.IMAGE, ComponentKind.TEXT]
        assert hstack.children[0].fields == {"src": Dynamic("logo")}

    def test_image_is_container(self):
        result = compile_template(block(tag("image", tag("text", text="caption"))))

        assert len(result.root.children[0].children) == 1

    def test_leaf_ignores_nested_tags(self, caplog):
        with caplog.at_level(logging.WARNING, logger="scenecraft.compiler.visitor"):
            result = compile_template(block(tag("text", tag("rectangle"), text="'a'", line=3)))

        assert result.root.children[0].children == []
        assert "cannot have children" in caplog.text

    def test_leaf_rejects_unknown_node(self):
        error = compile_error(block(tag("text", UnknownNode("Each", line=4), text="'a'")))

        assert error.kind == CompileErrorKind.UNKNOWN_NODE_KIND
        assert error.line == 4

    def test_leaf_rejects_unknown_tag(self):
        error = compile_error(block(tag("text", tag("circle", line=5), text="'a'")))

        assert error.kind == CompileErrorKind.UNKNOWN_COMPONENT_KIND
        assert error.line == 5

    def test_leaf_rejects_unknown_mixin_call(self):
        error = compile_error(block(tag("rectangle", call("missing", line=6))))

        assert error.kind == CompileErrorKind.UNKNOWN_MIXIN

    def test_leaf_with_only_text_does_not_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="scenecraft.compiler.visitor"):
            compile_template(block(tag("text", Text("hi"), Comment("c"), text="'a'")))

        assert "cannot have children" not in caplog.text

    def test_text_and_comments_are_ignored(self):
        result = compile_template(block(Text("hello"), Comment("note"), tag("rectangle")))

        assert len(result.root.children) == 1

    def test_unknown_tag(self):
        error = compile_error(block(tag("circle", line=7)))

        assert error.kind == CompileErrorKind.UNKNOWN_COMPONENT_KIND
        assert error.line == 7
        assert str(error) == "7: Unknown tag: circle"

    def test_unknown_node_kind_fails_whole_compile(self):
        error = compile_error(block(tag("rectangle"), UnknownNode("Code", line=3)))

        assert error.kind == CompileErrorKind.UNKNOWN_NODE_KIND
        assert error.line == 3
        assert "Code" in str(error)

    def test_effect_tag_outside_phase(self):
        error = compile_error(block(tag("transition", component="'title'")))

        assert error.kind == CompileErrorKind.UNKNOWN_COMPONENT_KIND

    def test_to_dict(self):
        result = compile_template(block(tag("vstack", tag("text", text="name"), id="'list'")))

        assert result.to_dict() == {
            "root": {
                "kind": "zstack",
                "children": [
                    {
                        "kind": "vstack",
                        "id": Literal("list"),
                        "children": [{"kind": "text", "text": Dynamic("name")}],
                    }
                ],
            },
            "phases": [{"name": "main", "effects": []}],
        }


# ---------------------------------------------------------------------------
# Mixins
# ---------------------------------------------------------------------------


class TestMixins:
    def test_call_expands_body(self):
        result = compile_template(
            block(declare("title", tag("text", text="'x'")), call("title"))
        )

        assert len(result.root.children) == 1
        assert result.root.children[0].fields == {"text": Literal("x")}

    def test_declarations_are_hoisted(self):
        result = compile_template(
            block(call("title"), declare("title", tag("text", text="'x'")))
        )

        assert len(result.root.children) == 1

    def test_last_declaration_wins(self):
        result = compile_template(
            block(
                declare("box", tag("rectangle")),
                declare("box", tag("text", text="'second'")),
                call("box"),
            )
        )

        assert result.root.children[0].kind == ComponentKind.TEXT

    def test_call_expands_into_caller_context(self):
        result = compile_template(
            block(
                declare("items", tag("text", text="'a'"), tag("text", text="'b'")),
                tag("vstack", call("items")),
            )
        )

        assert len(result.root.children) == 1
        assert len(result.root.children[0].children) == 2

    def test_mixin_called_twice(self):
        result = compile_template(
            block(declare("dot", tag("rectangle")), call("dot"), call("dot"))
        )

        assert len(result.root.children) == 2

    def test_unknown_mixin(self):
        error = compile_error(block(call("missing", line=5)))

        assert error.kind == CompileErrorKind.UNKNOWN_MIXIN
        assert error.line == 5

    def test_direct_recursion(self):
        error = compile_error(block(declare("loop", call("loop", line=2)), call("loop")))

        assert error.kind == CompileErrorKind.RECURSIVE_MIXIN
        assert "loop -> loop" in str(error)

    def test_indirect_recursion(self):
        error = compile_error(
            block(declare("a", call("b")), declare("b", call("a")), call("a"))
        )

        assert error.kind == CompileErrorKind.RECURSIVE_MIXIN
        assert "a -> b -> a" in str(error)

    def test_arguments_are_ignored_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="scenecraft.compiler.visitor"):
            result = compile_template(
                block(declare("title", tag("text", text="'x'")), call("title", args="'Hello'"))
            )

        assert result.root.children[0].fields == {"text": Literal("x")}
        assert "not supported" in caplog.text

    def test_mixin_table_is_per_compile(self):
        compiler = StructureCompiler()
        compiler.compile(block(declare("title", tag("rectangle")), call("title")))

        with pytest.raises(CompileError) as exc_info:
            compiler.compile(block(call("title")))

        assert exc_info.value.kind == CompileErrorKind.UNKNOWN_MIXIN

    def test_mixin_body_with_phase(self):
        result = compile_template(block(declare("anim", intro_phase()), call("anim")))

        assert [phase.name for phase in result.phases] == ["intro"]


# ---------------------------------------------------------------------------
# Conditionals
# ---------------------------------------------------------------------------


class TestConditionals:
    def test_consequent_gets_cond(self):
        result = compile_template(
            block(Conditional("show", block(tag("text", text="'a'"), tag("rectangle"))))
        )

        assert [c.cond for c in result.root.children] == ["show", "show"]

    def test_alternate_gets_negated_cond(self):
        result = compile_template(
            block(
                Conditional(
                    "user.premium",
                    block(tag("text", text="'gold'")),
                    block(tag("text", text="'basic'")),
                )
            )
        )
        gold, basic = result.root.children

        assert gold.cond == "user.premium"
        assert basic.cond == "!(user.premium)"

    def test_branches_are_siblings_in_parent(self):
        result = compile_template(
            block(
                tag(
                    "vstack",
                    tag("rectangle"),
                    Conditional("a", block(tag("text", text="'x'")), block(tag("text", text="'y'"))),
                )
            )
        )
        vstack = result.root.children[0]

        assert [c.cond for c in vstack.children] == [None, "a", "!(a)"]

    def test_nested_conditions_combine(self):
        result = compile_template(
            block(Conditional("a", block(Conditional("b", block(tag("rectangle"))))))
        )

        assert result.root.children[0].cond == "(a) && (b)"

    def test_else_if_chain(self):
        result = compile_template(
            block(
                Conditional(
                    "a",
                    block(tag("text", text="'one'")),
                    Conditional(
                        "b",
                        block(tag("text", text="'two'")),
                        block(tag("text", text="'three'")),
                    ),
                )
            )
        )

        assert [c.cond for c in result.root.children] == [
            "a",
            "(!(a)) && (b)",
            "(!(a)) && (!(b))",
        ]

    def test_conditional_in_leaf_is_invalid(self):
        error = compile_error(
            block(tag("text", Conditional("a", block(tag("rectangle")), line=4), text="'x'"))
        )

        assert error.kind == CompileErrorKind.INVALID_CONDITIONAL
        assert error.line == 4

    def test_conditional_after_nested_tag_in_leaf_is_invalid(self):
        error = compile_error(
            block(
                tag(
                    "text",
                    tag("rectangle"),
                    Conditional("a", block(tag("rectangle")), line=5),
                    text="'x'",
                )
            )
        )

        assert error.kind == CompileErrorKind.INVALID_CONDITIONAL
        assert error.line == 5

    def test_conditional_deep_in_leaf_is_invalid(self):
        nested = tag("vstack", Conditional("a", block(tag("rectangle")), line=6))

        error = compile_error(block(tag("text", nested, text="'x'")))

        assert error.kind == CompileErrorKind.INVALID_CONDITIONAL
        assert error.line == 6

    def test_conditional_does_not_evaluate_test(self):
        result = compile_template(block(Conditional("a[0].constructor", block(tag("rectangle")))))

        assert result.root.children[0].cond == "a[0].constructor"


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


class TestPhases:
    def test_no_phases_yields_main(self):
        result = compile_template(block(tag("rectangle")))

        assert len(result.phases) == 1
        assert result.phases[0].name == "main"
        assert result.phases[0].effects == []

    def test_transition(self):
        result = compile_template(block(intro_phase()))

        assert len(result.phases) == 1
        phase = result.phases[0]
        assert phase.name == "intro"
        assert phase.effects == [
            TransitionSpec(
                component="title",
                duration=Literal(500),
                easing=Literal("ease-in"),
                from_=Dynamic("{opacity:0}"),
                to=Dynamic("{opacity:1}"),
            )
        ]

    def test_phase_contributes_no_component(self):
        result = compile_template(block(tag("text", text="'x'"), intro_phase()))

        assert len(result.root.children) == 1

    def test_phases_in_source_order(self):
        result = compile_template(
            block(
                tag("phase", tag("override", component="'a'", opacity="0"), name="'first'"),
                tag("phase", tag("override", component="'a'", opacity="1"), name="'second'"),
            )
        )

        assert [phase.name for phase in result.phases] == ["first", "second"]

    def test_phase_requires_name(self):
        error = compile_error(block(tag("phase", tag("override", component="'a'"), line=2)))

        assert error.kind == CompileErrorKind.MISSING_REQUIRED_ATTRIBUTE
        assert error.attribute == "name"
        assert error.line == 2

    def test_phase_name_must_be_literal_string(self):
        error = compile_error(block(tag("phase", tag("override", component="'a'"), name="intro")))

        assert error.kind == CompileErrorKind.INVALID_ATTRIBUTE_TYPE

    def test_phase_name_must_not_be_empty(self):
        error = compile_error(block(tag("phase", tag("override", component="'a'"), name="''")))

        assert error.kind == CompileErrorKind.INVALID_ATTRIBUTE_TYPE

    def test_phase_requires_block(self):
        error = compile_error(block(tag("phase", name="'intro'")))

        assert error.kind == CompileErrorKind.INVALID_PHASE_BODY

    def test_phase_with_illegal_sibling_emits_nothing(self):
        compiler = StructureCompiler()
        root = block(
            tag(
                "phase",
                tag("transition", component="'title'"),
                tag("rectangle", line=4),
                name="'intro'",
            )
        )

        with pytest.raises(CompileError) as exc_info:
            compiler.compile(root)

        assert exc_info.value.kind == CompileErrorKind.INVALID_PHASE_BODY
        assert exc_info.value.line == 4
        assert compiler.phases == []

    def test_phase_with_conditional_is_invalid(self):
        error = compile_error(
            block(tag("phase", Conditional("a", block(tag("override", component="'x'"))), name="'p'"))
        )

        assert error.kind == CompileErrorKind.INVALID_PHASE_BODY

    def test_text_in_phase_is_skipped(self):
        result = compile_template(
            block(tag("phase", Text("\n"), tag("override", component="'a'"), Comment("c"), name="'p'"))
        )

        assert len(result.phases[0].effects) == 1

    def test_transition_requires_component(self):
        error = compile_error(block(tag("phase", tag("transition", duration="100"), name="'p'")))

        assert error.kind == CompileErrorKind.MISSING_REQUIRED_ATTRIBUTE
        assert error.attribute == "component"

    def test_transition_component_must_be_string(self):
        error = compile_error(block(tag("phase", tag("transition", component="title"), name="'p'")))

        assert error.kind == CompileErrorKind.INVALID_ATTRIBUTE_TYPE

    @pytest.mark.parametrize(
        "attrs",
        [
            {"easing": "'bounce'"},
            {"duration": "0"},
            {"duration": "-5"},
            {"duration": "'slow'"},
            {"from": "'big'"},
        ],
    )
    def test_transition_invalid_literals(self, attrs):
        error = compile_error(
            block(tag("phase", tag("transition", component="'title'", **attrs), name="'p'"))
        )

        assert error.kind == CompileErrorKind.INVALID_ATTRIBUTE_TYPE

    def test_transition_dynamic_values_are_deferred(self):
        result = compile_template(
            block(
                tag(
                    "phase",
                    tag("transition", component="'title'", duration="speed", easing="curve"),
                    name="'p'",
                )
            )
        )

        assert result.phases[0].effects == [
            TransitionSpec(component="title", duration=Dynamic("speed"), easing=Dynamic("curve"))
        ]

    def test_override(self):
        result = compile_template(
            block(
                tag(
                    "phase",
                    tag("override", component="'title'", opacity="0.5", scale="zoom", color="'red'"),
                    name="'p'",
                )
            )
        )

        assert result.phases[0].effects == [
            OverrideSpec(component="title", values={"opacity": Literal(0.5), "scale": Dynamic("zoom")})
        ]

    def test_override_value_must_be_number(self):
        error = compile_error(
            block(tag("phase", tag("override", component="'title'", opacity="'x'"), name="'p'"))
        )

        assert error.kind == CompileErrorKind.INVALID_ATTRIBUTE_TYPE
        assert error.attribute == "opacity"

    def test_typing_effect_default_duration(self):
        result = compile_template(
            block(tag("phase", tag("effect", name="'typing'", component="'title'"), name="'p'"))
        )

        assert result.phases[0].effects == [TypingEffectSpec(component="title", duration=50)]

    def test_typing_effect_duration(self):
        result = compile_template(
            block(
                tag("phase", tag("effect", name="'typing'", component="'title'", duration="80"), name="'p'")
            )
        )

        assert result.phases[0].effects[0].duration == 80

    def test_unknown_effect(self):
        error = compile_error(
            block(tag("phase", tag("effect", name="'blink'", component="'title'"), name="'p'"))
        )

        assert error.kind == CompileErrorKind.UNKNOWN_EFFECT

    @pytest.mark.parametrize("duration", ["'fast'", "0", "speed"])
    def test_typing_effect_invalid_duration(self, duration):
        error = compile_error(
            block(
                tag(
                    "phase",
                    tag("effect", name="'typing'", component="'title'", duration=duration),
                    name="'p'",
                )
            )
        )

        assert error.kind == CompileErrorKind.INVALID_ATTRIBUTE_TYPE

    def test_effect_requires_component(self):
        error = compile_error(block(tag("phase", tag("effect", name="'typing'"), name="'p'")))

        assert error.kind == CompileErrorKind.MISSING_REQUIRED_ATTRIBUTE
        assert error.attribute == "component"

    def test_phase_to_dict(self):
        result = compile_template(block(intro_phase()))

        assert result.phases[0].to_dict() == {
            "name": "intro",
            "effects": [
                {
                    "type": "transition",
                    "component": "title",
                    "duration": Literal(500),
                    "easing": Literal("ease-in"),
                    "from": Dynamic("{opacity:0}"),
                    "to": Dynamic("{opacity:1}"),
                }
            ],
        }

    def test_compile_error_to_dict(self):
        error = compile_error(block(tag("phase", tag("transition", line=9), name="'p'")))

        assert error.to_dict() == {
            "kind": "missing_required_attribute",
            "message": "transition() requires a component attribute",
            "line": 9,
            "attribute": "component",
        }

    def test_default_phase_is_plain_phase_spec(self):
        assert compile_template(block()).phases == [PhaseSpec(name="main")]
