"""
Rule identity and group checksums.

``hash_rule`` gives a rule its ID: a 64-bit FNV-1a fingerprint of the fields
that make a rule what it is (expression, kind, name, labels). Two rules with
the same ID inside one group are duplicates.

``group_checksum`` digests a group's whole definition so a reload can tell
whether anything changed, including rule order.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from .models import Group, Rule

FNV64_OFFSET_BASIS = 0xCBF29CE484222325
FNV64_PRIME = 0x100000001B3
_MASK64 = 0xFFFFFFFFFFFFFFFF

LABEL_SEPARATOR = b"\xff"


class FNV1a64:
    """Streaming 64-bit FNV-1a hash."""

    def __init__(self) -> None:
        self._value = FNV64_OFFSET_BASIS

    def update(self, data: bytes) -> None:
        value = self._value
        for byte in data:
            value ^= byte
            value = (value * FNV64_PRIME) & _MASK64
        self._value = value

    def digest(self) -> int:
        return self._value


def hash_rule(rule: "Rule") -> int:
    """
    Compute the identity fingerprint of a rule.

    Annotations and ``for`` do not take part: changing them does not make a
    different rule.
    """
    h = FNV1a64()
    h.update(rule.expr.encode())
    if rule.record:
        h.update(b"recording")
        h.update(rule.record.encode())
    else:
        h.update(b"alerting")
        h.update(rule.alert.encode())
    for key, value in sorted(rule.labels.items()):
        h.update(key.encode())
        h.update(value.encode())
        h.update(LABEL_SEPARATOR)
    return h.digest()


def group_checksum(group: "Group") -> str:
    """MD5 hex digest over the group's re-serialized YAML definition."""
    data = yaml.safe_dump(group.to_dict(), default_flow_style=False, sort_keys=False)
    return hashlib.md5(data.encode()).hexdigest()
