"""Expression language for dotted-tree.

This package provides:
- Lexer: Tokenizes expression strings
- Parser: Produces AST from tokens
- Evaluator: Evaluates AST against a scope and resolver namespace
- ExpressionEvaluator: Classifies and expands expression properties
- ResolverRegistry: Flattened registry of host resolver functions
"""

from dotted_tree.expressions.evaluator import (
    EvaluationContext,
    EvaluationError,
    Evaluator,
    ExpressionEvaluator,
    build_namespace,
    evaluate,
)
from dotted_tree.expressions.functions import (
    ResolverDefinition,
    ResolverRegistry,
    flatten_resolvers,
)
from dotted_tree.expressions.lexer import Lexer, Token, TokenType
from dotted_tree.expressions.parser import (
    ASTNode,
    ArrayLiteral,
    BinaryOp,
    Conditional,
    FunctionCall,
    Identifier,
    IndexAccess,
    Literal,
    MemberAccess,
    ObjectLiteral,
    Parser,
    Pronoun,
    Reference,
    TemplateString,
    UnaryOp,
    parse,
)
from dotted_tree.expressions.templates import has_function_call, has_template, looks_like_expression

__all__ = [
    # Evaluator
    "EvaluationContext",
    "EvaluationError",
    "Evaluator",
    "ExpressionEvaluator",
    "build_namespace",
    "evaluate",
    # Resolvers
    "ResolverDefinition",
    "ResolverRegistry",
    "flatten_resolvers",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    # Parser
    "ASTNode",
    "ArrayLiteral",
    "BinaryOp",
    "Conditional",
    "FunctionCall",
    "Identifier",
    "IndexAccess",
    "Literal",
    "MemberAccess",
    "ObjectLiteral",
    "Parser",
    "Pronoun",
    "Reference",
    "TemplateString",
    "UnaryOp",
    "parse",
    # Shape detection
    "has_function_call",
    "has_template",
    "looks_like_expression",
]
