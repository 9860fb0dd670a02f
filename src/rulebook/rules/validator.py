"""
Rule and group validation.

Checks run in a fixed order and stop at the first failure. Errors name the
group and the rule (by its record/alert name) so an operator can find the
offending definition.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from rulebook.auth import parse_token
from rulebook.core.errors import (
    RulebookError,
    TenantTokenError,
    UnknownFieldsError,
    ValidationError,
)
from rulebook.validation.expressions import ExpressionValidator, SyntaxExpressionValidator
from rulebook.validation.templates import ActionTemplateValidator, TemplateValidator

from .hashing import hash_rule

if TYPE_CHECKING:
    from .models import Group, Rule


def check_overflow(extra: dict, context: str, details: Optional[dict] = None) -> None:
    """Reject undeclared fields captured during decoding."""
    if extra:
        raise UnknownFieldsError(extra.keys(), context, details)


def _reason(exc: Exception) -> str:
    return exc.message if isinstance(exc, RulebookError) else str(exc)


def validate_rule(rule: "Rule") -> None:
    """
    Validate a single rule.

    Raises:
        ValidationError: If both or neither of record/alert are set, or expr is empty
        UnknownFieldsError: If the rule carries undeclared fields
    """
    if bool(rule.record) == bool(rule.alert):
        raise ValidationError("either `record` or `alert` must be set")
    if not rule.expr:
        raise ValidationError("expression can't be empty")
    check_overflow(rule.extra, "rule")


def validate_group(
    group: "Group",
    validate_annotations: bool,
    validate_expressions: bool,
    *,
    expression_validator: Optional[ExpressionValidator] = None,
    template_validator: Optional[TemplateValidator] = None,
) -> None:
    """
    Validate a group and every rule in it.

    Args:
        group: Group to validate
        validate_annotations: Check labels and annotations as templates
        validate_expressions: Check rule expressions syntax
        expression_validator: Overrides the default expression validator
        template_validator: Overrides the default template validator

    Raises:
        ValidationError: On the first semantic problem found
        UnknownFieldsError: If the group or one of its rules has undeclared fields
    """
    if not group.name:
        raise ValidationError("group name must be set")
    if not group.rules:
        raise ValidationError(f"group {group.name!r} can't contain no rules", {"group": group.name})

    try:
        parse_token(group.tenant)
    except TenantTokenError as exc:
        raise exc.wrap(f"invalid tenant for group {group.name!r}", group=group.name) from exc

    expressions = expression_validator or SyntaxExpressionValidator()
    templates = template_validator or ActionTemplateValidator()

    seen_ids: set[int] = set()
    for rule in group.rules:
        rule_name = rule.name
        details = {"group": group.name, "rule": rule_name}
        where = f"{group.name!r}.{rule_name!r}"

        try:
            validate_rule(rule)
        except RulebookError as exc:
            raise exc.wrap(f"invalid rule {where}", **details) from exc

        rule_id = rule.id or hash_rule(rule)
        if rule_id in seen_ids:
            raise ValidationError(f"rule {rule_name!r} duplicate", details)
        seen_ids.add(rule_id)

        if validate_expressions:
            try:
                expressions.validate(rule.expr)
            except (RulebookError, ValueError) as exc:
                raise ValidationError(
                    f"invalid expression for rule {where}: {_reason(exc)}", details
                ) from exc

        if validate_annotations:
            for kind, mapping in (("annotations", rule.annotations), ("labels", rule.labels)):
                try:
                    templates.validate(mapping)
                except (RulebookError, ValueError) as exc:
                    raise ValidationError(
                        f"invalid {kind} for rule {where}: {_reason(exc)}", details
                    ) from exc

    check_overflow(group.extra, f"group {group.name!r}", {"group": group.name})
