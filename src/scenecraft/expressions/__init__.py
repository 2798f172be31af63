"""Expression sandbox for SceneCraft data bindings.

This module provides:
- Lexer: Tokenizes expression strings
- Parser: Produces AST from tokens
- Validator: Whitelist pass with depth/size bounds
- Evaluator: Evaluates a validated AST against a data environment
- GLOBAL_ENVIRONMENT: Read-only math functions and constants
- Sandbox: Ties the above together for one data environment
"""

from scenecraft.expressions.environment import (
    GLOBAL_ENVIRONMENT,
    EntryKind,
    EnvironmentEntry,
    describe_environment,
)
from scenecraft.expressions.evaluator import (
    UNDEFINED,
    EvaluationContext,
    Evaluator,
    is_nullish,
    is_truthy,
    to_js_string,
)
from scenecraft.expressions.lexer import Lexer, LexerError, Token, TokenType
from scenecraft.expressions.parser import (
    ASTNode,
    ArrayLiteral,
    Assignment,
    BinaryOp,
    ConditionalOp,
    FunctionCall,
    Identifier,
    IndexAccess,
    Literal,
    MemberAccess,
    NewExpression,
    ObjectLiteral,
    ObjectProperty,
    ParseError,
    Parser,
    Sequence,
    Spread,
    ThisExpression,
    UnaryOp,
    Update,
    parse,
)
from scenecraft.expressions.sandbox import Sandbox, SandboxOptions, evaluate
from scenecraft.expressions.validator import (
    ALLOWED_BINARY_OPERATORS,
    ALLOWED_UNARY_OPERATORS,
    FORBIDDEN_PROPERTIES,
    Validator,
)

__all__ = [
    # Environment
    "GLOBAL_ENVIRONMENT",
    "EntryKind",
    "EnvironmentEntry",
    "describe_environment",
    # Evaluator
    "UNDEFINED",
    "EvaluationContext",
    "Evaluator",
    "is_nullish",
    "is_truthy",
    "to_js_string",
    # Lexer
    "Lexer",
    "LexerError",
    "Token",
    "TokenType",
    # Parser
    "ASTNode",
    "ArrayLiteral",
    "Assignment",
    "BinaryOp",
    "ConditionalOp",
    "FunctionCall",
    "Identifier",
    "IndexAccess",
    "Literal",
    "MemberAccess",
    "NewExpression",
    "ObjectLiteral",
    "ObjectProperty",
    "ParseError",
    "Parser",
    "Sequence",
    "Spread",
    "ThisExpression",
    "UnaryOp",
    "Update",
    "parse",
    # Sandbox
    "Sandbox",
    "SandboxOptions",
    "evaluate",
    # Validator
    "ALLOWED_BINARY_OPERATORS",
    "ALLOWED_UNARY_OPERATORS",
    "FORBIDDEN_PROPERTIES",
    "Validator",
]
