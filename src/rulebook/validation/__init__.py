"""Validation module for rule expressions and templates."""

from rulebook.validation.expressions import (
    ExpressionValidator,
    SyntaxExpressionValidator,
    validate_expression,
)
from rulebook.validation.templates import (
    ActionTemplateValidator,
    TemplateValidator,
    validate_templates,
)

__all__ = [
    # Expressions
    "ExpressionValidator",
    "SyntaxExpressionValidator",
    "validate_expression",
    # Templates
    "TemplateValidator",
    "ActionTemplateValidator",
    "validate_templates",
]
