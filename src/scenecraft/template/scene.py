"""Scene templates: compile once, build per render request."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from scenecraft.compiler.visitor import CompileResult, StructureCompiler
from scenecraft.expressions.sandbox import SandboxOptions
from scenecraft.resolver import ExpressionObserver, StructureResolver
from scenecraft.specification import Literal
from scenecraft.template.nodes import Block

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080
DEFAULT_FPS = 30


@dataclass
class SceneSpec:
    """One renderable scene: the resolved component tree plus one phase's effects.

    Attributes:
        name: "<template name> <phase name>"
        fps: Frames per second
        width: Canvas width
        height: Canvas height
        root: Resolved component tree, shared by all scenes of one build
        effects: Resolved effects of the phase
    """

    name: str
    fps: int
    width: int | float
    height: int | float
    root: dict[str, Any] | None
    effects: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "fps": self.fps,
            "width": self.width,
            "height": self.height,
            "root": self.root,
            "effects": self.effects,
        }


class SceneTemplate:
    """A template AST bound to a canvas size.

    The structure is compiled on first use and the result reused for every
    build; each build resolves the compiled tree against its own data.

    Usage:
        template = SceneTemplate("Intro", 1920, 1080, block)
        for scene in template.build({"name": "Alice"}):
            render(scene)
    """

    def __init__(
        self,
        name: str,
        width: int | float,
        height: int | float,
        structure: Block,
        fps: int = DEFAULT_FPS,
    ):
        self.name = name
        self.width = width
        self.height = height
        self.structure = structure
        self.fps = fps
        self._compiled: CompileResult | None = None

    def compile(self) -> CompileResult:
        """Compile the structure, sizing the root to the canvas."""
        if self._compiled is None:
            result = StructureCompiler().compile(self.structure)
            result.root.fields["width"] = Literal(self.width)
            result.root.fields["height"] = Literal(self.height)
            logger.debug("Compiled template '%s' (%d phases)", self.name, len(result.phases))
            self._compiled = result
        return self._compiled

    def build(
        self,
        data: Mapping[str, Any],
        *,
        options: SandboxOptions | None = None,
        on_expression: ExpressionObserver | None = None,
    ) -> list[SceneSpec]:
        """Resolve the template against data into one SceneSpec per phase."""
        compiled = self.compile()
        resolver = StructureResolver(data, options, on_expression)

        root = resolver.resolve(compiled.root)
        scenes = []
        for phase in compiled.phases:
            resolved = resolver.resolve(phase)
            scenes.append(
                SceneSpec(
                    name=f"{self.name} {phase.name}",
                    fps=self.fps,
                    width=self.width,
                    height=self.height,
                    root=root,
                    effects=resolved["effects"],
                )
            )
        return scenes
