"""Metric samples returned by instant queries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Label:
    """A single label pair of a metric."""

    name: str
    value: str


@dataclass
class Metric:
    """One sample of an instant vector."""

    labels: List[Label] = field(default_factory=list)
    timestamp: int = 0
    value: float = 0.0

    def label(self, name: str) -> Optional[str]:
        """Return the value of label ``name`` or None."""
        for lbl in self.labels:
            if lbl.name == name:
                return lbl.value
        return None
