"""Structural compiler for SceneCraft templates.

This module provides:
- classify_value / extract_attributes: raw attribute text -> Literal or Dynamic
- StructureCompiler: template AST -> ComponentSpec tree + PhaseSpec list

Usage:
    from scenecraft.compiler import compile_template

    result = compile_template(block)
    result.root.children
    result.phases
"""

from scenecraft.compiler.attributes import classify_value, extract_attributes
from scenecraft.compiler.visitor import CompileResult, StructureCompiler, compile_template

__all__ = [
    "classify_value",
    "extract_attributes",
    "CompileResult",
    "StructureCompiler",
    "compile_template",
]
