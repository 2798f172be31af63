"""
template/loader.py — Load template AST documents from JSON or YAML files.

Two document shapes are accepted, both checked against ``schemas/ast.schema.json``:

- a bare ``Block`` node, exactly as emitted by the markup parser
- a scene document: ``structure`` (a Block) plus optional ``name``, ``width``,
  ``height`` and ``fps``

Usage:
    from scenecraft.template.loader import load_ast, load_template

    block = load_ast(Path("intro.yaml"))
    template = load_template(Path("intro.yaml"))

JSON is a subset of YAML, so both formats go through ``yaml.safe_load``.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from scenecraft.template.nodes import Block, block_from_dict
from scenecraft.template.scene import (
    DEFAULT_FPS,
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    SceneTemplate,
)

logger = logging.getLogger(__name__)

_SCHEMAS_DIR = Path(__file__).parent / "schemas"
AST_SCHEMA = "ast.schema.json"


# ---------------------------------------------------------------------------
# Public data types
# ---------------------------------------------------------------------------


@dataclass
class ValidationIssue:
    """A single validation finding for an AST document."""

    message: str
    path: str = ""            # location within the document, e.g. "nodes[0]/attrs[1]"
    file: Path | None = None
    severity: str = "error"   # "error" | "warning"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        where = f" {self.file}" if self.file is not None else ""
        return f"[{self.severity.upper()}]{where}{loc}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "path": self.path,
            "file": str(self.file) if self.file is not None else None,
            "severity": self.severity,
        }


class TemplateLoadError(Exception):
    """An AST document could not be read or failed schema validation."""

    def __init__(self, path: Path, issues: list[ValidationIssue]):
        self.path = path
        self.issues = issues
        summary = "; ".join(str(issue) for issue in issues[:3])
        more = f" (+{len(issues) - 3} more)" if len(issues) > 3 else ""
        super().__init__(f"Invalid template document {path}: {summary}{more}")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_schema(name: str) -> dict[str, Any]:
    schema_path = _SCHEMAS_DIR / name
    with schema_path.open() as fh:
        return json.load(fh)


@lru_cache(maxsize=1)
def _ast_validator() -> Draft202012Validator:
    return Draft202012Validator(_load_schema(AST_SCHEMA))


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_ast_document(doc: Any, *, file: Path | None = None) -> list[ValidationIssue]:
    """
    Validate a parsed AST document against the AST schema.

    Returns:
        A list of :class:`ValidationIssue` objects (empty on success).
    """
    validator = _ast_validator()
    return [
        ValidationIssue(message=error.message, path=_json_path(error), file=file)
        for error in sorted(validator.iter_errors(doc), key=lambda e: list(map(str, e.path)))
    ]


def read_document(path: Path) -> Any:
    """Parse a JSON or YAML file without validating it."""
    try:
        with path.open() as fh:
            doc = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise TemplateLoadError(
            path, [ValidationIssue(message=f"YAML parse error: {exc}", file=path)]
        ) from exc

    if doc is None:
        raise TemplateLoadError(
            path,
            [ValidationIssue(message="File is empty or contains only whitespace", file=path)],
        )
    return doc


def load_document(path: Path) -> dict[str, Any]:
    """Read and schema-validate an AST document."""
    doc = read_document(path)
    issues = validate_ast_document(doc, file=path)
    if issues:
        raise TemplateLoadError(path, issues)
    logger.debug("Loaded AST document %s", path)
    return doc


def load_ast(path: Path) -> Block:
    """Load a document and return its top-level Block."""
    doc = load_document(path)
    return block_from_dict(doc.get("structure", doc))


def load_template(path: Path) -> SceneTemplate:
    """Load a document as a SceneTemplate.

    A bare Block gets the default canvas size and is named after the file.
    """
    doc = load_document(path)
    if "structure" not in doc:
        return SceneTemplate(path.stem, DEFAULT_WIDTH, DEFAULT_HEIGHT, block_from_dict(doc))

    return SceneTemplate(
        name=doc.get("name", path.stem),
        width=doc.get("width", DEFAULT_WIDTH),
        height=doc.get("height", DEFAULT_HEIGHT),
        structure=block_from_dict(doc["structure"]),
        fps=doc.get("fps", DEFAULT_FPS),
    )
