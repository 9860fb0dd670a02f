"""
Validate command.

Dry run of rule loading: parse and validate rule files, then report the
groups that would be evaluated.
"""

from __future__ import annotations

from typing import Sequence

from rulebook.cli.ux import console, header, print_table, success, warning
from rulebook.core.errors import ExitCode
from rulebook.rules import format_duration, parse


def validate_command(
    patterns: Sequence[str],
    validate_templates: bool = True,
    validate_expressions: bool = True,
) -> int:
    """
    Validate rule files.

    Args:
        patterns: Glob patterns of rule files
        validate_templates: Check labels and annotations templates
        validate_expressions: Check rule expressions syntax

    Returns:
        Exit code (0 = valid, 1 = no groups found)

    Raises:
        RulebookError: If any file, group or rule is invalid
    """
    header("Validate Rule Files")

    groups = parse(patterns, validate_templates, validate_expressions)

    if not groups:
        warning(f"No groups found in {';'.join(patterns)}")
        return ExitCode.WARNING

    rows = [
        [
            group.file,
            group.name,
            group.tenant or "-",
            format_duration(group.interval) if group.interval else "-",
            str(len(group.rules)),
            group.checksum,
        ]
        for group in groups
    ]
    print_table("Groups", ["File", "Group", "Tenant", "Interval", "Rules", "Checksum"], rows)
    console.print()

    rule_count = sum(len(group.rules) for group in groups)
    success(f"{len(groups)} groups with {rule_count} rules are valid")
    return ExitCode.SUCCESS
