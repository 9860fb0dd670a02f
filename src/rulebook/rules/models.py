"""
Rule Models

Data models for recording/alerting rules and the groups that hold them.
Decoding keeps every undeclared key in ``extra`` so validation can reject
it; nothing is dropped silently.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, Dict, Tuple

from rulebook.core.errors import ConfigurationError

from .durations import format_duration, parse_duration
from .hashing import group_checksum, hash_rule

GLOBAL_FIELDS = ("tenant",)
GROUP_FIELDS = ("name", "interval", "rules", "concurrency", "tenant")
RULE_FIELDS = ("record", "alert", "expr", "for", "labels", "annotations")

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _extra(data: Dict[Any, Any], known: Tuple[str, ...]) -> Dict[str, Any]:
    return {str(k): v for k, v in data.items() if k not in known}


def _scalar_to_str(value: Any, key: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ConfigurationError(
        f"field {key!r} must be a string, got {type(value).__name__}",
        details={"field": key},
    )


def _string(data: Dict[Any, Any], key: str) -> str:
    return _scalar_to_str(data.get(key), key)


def _string_map(data: Dict[Any, Any], key: str) -> Dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(
            f"field {key!r} must be a mapping, got {type(value).__name__}",
            details={"field": key},
        )
    return {
        _scalar_to_str(k, key): _scalar_to_str(v, f"{key}.{k}") for k, v in value.items()
    }


def _duration(data: Dict[Any, Any], key: str) -> timedelta:
    try:
        return parse_duration(data.get(key))
    except ValueError as exc:
        raise ConfigurationError(
            f"field {key!r}: {exc}", details={"field": key}
        ) from exc


def _integer(data: Dict[Any, Any], key: str) -> int:
    value = data.get(key)
    if value is None or value == "":
        return 0
    if isinstance(value, str) and _INTEGER.fullmatch(value.strip()):
        return int(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ConfigurationError(
        f"field {key!r} must be an integer, got {value!r}", details={"field": key}
    )


def _mapping(data: Any, what: str) -> Dict[Any, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{what} must be a mapping, got {type(data).__name__}")
    return data


@dataclass(frozen=True)
class Rule:
    """
    A recording or alerting rule.

    Exactly one of ``record`` and ``alert`` should be set; that is checked
    by validation, not by construction.
    """

    record: str = ""
    alert: str = ""
    expr: str = ""
    for_: timedelta = timedelta(0)
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)

    # Identity fingerprint, see hashing.hash_rule
    id: int = 0

    # Undeclared keys from the source mapping
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Rule":
        """
        Decode a rule from its YAML mapping.

        Example input:
            {
                "alert": "InstanceDown",
                "expr": "up == 0",
                "for": "5m",
                "labels": {"severity": "critical"},
                "annotations": {"summary": "{{ $labels.instance }} down"},
            }
        """
        data = _mapping(data, "rule")
        return cls(
            record=_string(data, "record"),
            alert=_string(data, "alert"),
            expr=_string(data, "expr"),
            for_=_duration(data, "for"),
            labels=_string_map(data, "labels"),
            annotations=_string_map(data, "annotations"),
            extra=_extra(data, RULE_FIELDS),
        )

    @property
    def name(self) -> str:
        """Rule name according to its type."""
        return self.record or self.alert

    @property
    def is_recording(self) -> bool:
        return bool(self.record)

    @property
    def is_alerting(self) -> bool:
        return bool(self.alert)

    def with_id(self) -> "Rule":
        """Return a copy with ``id`` set from the identity fingerprint."""
        return replace(self, id=hash_rule(self))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to rule file format, omitting empty optional fields."""
        rule: Dict[str, Any] = {}
        if self.record:
            rule["record"] = self.record
        if self.alert:
            rule["alert"] = self.alert
        rule["expr"] = self.expr
        if self.for_:
            rule["for"] = format_duration(self.for_)
        if self.labels:
            rule["labels"] = dict(sorted(self.labels.items()))
        if self.annotations:
            rule["annotations"] = dict(sorted(self.annotations.items()))
        return rule

    def __repr__(self) -> str:
        kind = "record" if self.record else "alert"
        return f"Rule({kind}='{self.name}', id={self.id})"


@dataclass(frozen=True)
class Global:
    """Settings applied to every group of a file that does not set them."""

    tenant: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Global":
        data = _mapping(data, "global")
        return cls(tenant=_string(data, "tenant"), extra=_extra(data, GLOBAL_FIELDS))


@dataclass(frozen=True)
class Group:
    """
    A named, ordered set of rules evaluated together.

    ``file`` is set by the loader; ``checksum`` by ``finalize``.
    """

    name: str = ""
    interval: timedelta = timedelta(0)
    rules: Tuple[Rule, ...] = ()
    concurrency: int = 0
    tenant: str = ""

    file: str = ""
    checksum: str = ""

    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Group":
        """Decode a group and its rules from a YAML mapping."""
        data = _mapping(data, "group")

        raw_rules = data.get("rules") or []
        if not isinstance(raw_rules, list):
            raise ConfigurationError(
                f"field 'rules' must be a list, got {type(raw_rules).__name__}",
                details={"field": "rules"},
            )

        concurrency = _integer(data, "concurrency")

        return cls(
            name=_string(data, "name"),
            interval=_duration(data, "interval"),
            rules=tuple(Rule.from_dict(r) for r in raw_rules),
            concurrency=concurrency,
            tenant=_string(data, "tenant"),
            extra=_extra(data, GROUP_FIELDS),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to rule file format."""
        group: Dict[str, Any] = {"name": self.name}
        if self.interval:
            group["interval"] = format_duration(self.interval)
        group["rules"] = [rule.to_dict() for rule in self.rules]
        group["concurrency"] = self.concurrency
        group["tenant"] = self.tenant
        return group

    def finalize(self) -> "Group":
        """Return a copy with rule IDs and the checksum computed."""
        group = replace(self, rules=tuple(rule.with_id() for rule in self.rules))
        return replace(group, checksum=group_checksum(group))

    def replace(self, **changes: Any) -> "Group":
        return replace(self, **changes)

    def validate(
        self, validate_annotations: bool, validate_expressions: bool, **kwargs: Any
    ) -> None:
        """Validate the group; see ``validator.validate_group``."""
        from .validator import validate_group

        validate_group(self, validate_annotations, validate_expressions, **kwargs)
