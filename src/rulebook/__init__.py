"""
rulebook: recording and alerting rule configuration.

Loads rule groups from YAML files, gives every rule a stable identity,
checksums group definitions for reload detection, validates everything
strictly, and queries a Prometheus-compatible datasource.
"""

from rulebook.rules import Global, Group, Rule, RuleLoader, parse

__version__ = "0.1.0"

__all__ = ["Global", "Group", "Rule", "RuleLoader", "parse", "__version__"]
