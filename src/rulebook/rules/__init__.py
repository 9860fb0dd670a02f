"""
rulebook rule configuration.

Models, identity hashing, validation and file loading for recording and
alerting rule groups.
"""

from rulebook.rules.durations import format_duration, parse_duration
from rulebook.rules.hashing import group_checksum, hash_rule
from rulebook.rules.loader import RuleLoader, apply_global, parse, parse_file
from rulebook.rules.models import Global, Group, Rule
from rulebook.rules.validator import validate_group, validate_rule

__all__ = [
    # Models
    "Global",
    "Group",
    "Rule",
    # Hashing
    "hash_rule",
    "group_checksum",
    # Validation
    "validate_group",
    "validate_rule",
    # Loading
    "RuleLoader",
    "apply_global",
    "parse",
    "parse_file",
    # Durations
    "parse_duration",
    "format_duration",
]
