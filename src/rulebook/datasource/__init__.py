"""Metrics datasource access for rule evaluation."""

from rulebook.datasource.client import DatasourceClient, decode_response
from rulebook.datasource.models import Label, Metric

__all__ = ["DatasourceClient", "Label", "Metric", "decode_response"]
