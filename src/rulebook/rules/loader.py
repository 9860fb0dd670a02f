"""
Rule file loading.

Rule files are YAML documents of the form:

    global:
      tenant: "0"
    groups:
      - name: example
        interval: 30s
        rules:
          - record: job:up:sum
            expr: sum(up) by (job)
          - alert: InstanceDown
            expr: up == 0
            for: 5m

Loading is all-or-nothing: one unreadable file, unknown field or invalid
rule fails the whole load.
"""

from __future__ import annotations

import glob
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog
import yaml

from rulebook.core.errors import ConfigurationError, RulebookError, ValidationError
from rulebook.logging import bind_context
from rulebook.validation.expressions import ExpressionValidator
from rulebook.validation.templates import TemplateValidator

from .envtemplate import replace_env
from .models import Global, Group
from .validator import check_overflow

logger = structlog.get_logger()

CONFIG_FIELDS = ("global", "groups")

# Implicit tags kept when decoding rule files. Every other plain scalar
# (numbers, booleans, timestamps) is kept as its source text.
_KEPT_TAGS = ("tag:yaml.org,2002:null", "tag:yaml.org,2002:merge")


class RuleFileLoader(yaml.SafeLoader):
    """
    SafeLoader that leaves plain scalars as strings.

    ``tenant: 1:30`` stays ``"1:30"`` instead of the YAML 1.1 base-60 integer
    90, and label values like ``1.10``, ``yes`` or ``2024-01-01`` keep their
    exact text. Only ``null``/``~`` and merge keys are resolved.
    """


RuleFileLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag in _KEPT_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# glob skips dotfiles for "*" unless asked; Python 3.10 has no such option
_GLOB_OPTIONS: Dict[str, Any] = {"include_hidden": True} if sys.version_info >= (3, 11) else {}


def _check_pattern(pattern: str) -> None:
    """Reject malformed character classes, which glob would silently ignore."""
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "[":
            end = pattern.find("]", i + 2)
            if end == -1:
                raise ConfigurationError(
                    f"error reading file pattern {pattern}: syntax error in pattern",
                    details={"pattern": pattern},
                )
            i = end
        i += 1


def expand_patterns(patterns: Iterable[str]) -> List[str]:
    """
    Expand glob patterns into file paths, in pattern order.

    On Python 3.11+ wildcards also match dotfiles; Python 3.10 skips them.

    Raises:
        ConfigurationError: If any pattern is malformed
    """
    files: List[str] = []
    for pattern in patterns:
        _check_pattern(pattern)
        files.extend(sorted(glob.glob(pattern, **_GLOB_OPTIONS)))
    return files


def apply_global(groups: Sequence[Group], global_: Optional[Global]) -> List[Group]:
    """
    Apply file-level defaults to groups.

    A group's own tenant always wins; the global tenant only fills it in
    when empty.
    """
    if global_ is None:
        return list(groups)

    return [
        group if group.tenant else group.replace(tenant=global_.tenant)
        for group in groups
    ]


def parse_file(path: str | Path) -> List[Group]:
    """
    Read and decode one rule file.

    Groups are returned with globals applied and rule IDs and checksums
    computed, but not validated.

    Raises:
        ConfigurationError: If the file cannot be read or decoded, or has
            unknown top-level fields
    """
    path = str(path)
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise ConfigurationError(
            f"error reading alert rule file: {exc}", details={"file": path}
        ) from exc

    data = replace_env(data)

    try:
        doc = yaml.load(data, Loader=RuleFileLoader)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"error decoding YAML: {exc}", details={"file": path}) from exc

    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        raise ConfigurationError(
            f"config must be a mapping, got {type(doc).__name__}", details={"file": path}
        )

    global_ = Global.from_dict(doc["global"]) if doc.get("global") is not None else None

    raw_groups = doc.get("groups") or []
    if not isinstance(raw_groups, list):
        raise ConfigurationError(
            f"field 'groups' must be a list, got {type(raw_groups).__name__}",
            details={"file": path},
        )

    groups = apply_global([Group.from_dict(g) for g in raw_groups], global_)
    groups = [group.finalize() for group in groups]

    check_overflow({str(k): v for k, v in doc.items() if k not in CONFIG_FIELDS}, "config")
    if global_ is not None:
        check_overflow(global_.extra, "global")

    return groups


def parse(
    patterns: Iterable[str],
    validate_annotations: bool,
    validate_expressions: bool,
    *,
    expression_validator: Optional[ExpressionValidator] = None,
    template_validator: Optional[TemplateValidator] = None,
) -> List[Group]:
    """
    Load, validate and aggregate rule groups from files matching ``patterns``.

    Group names must be unique within a file; the same name may appear in
    different files. Finding no groups at all is logged as a warning and is
    not an error.

    Args:
        patterns: Glob patterns of rule files
        validate_annotations: Check labels and annotations templates
        validate_expressions: Check rule expressions syntax
        expression_validator: Overrides the default expression validator
        template_validator: Overrides the default template validator

    Returns:
        Validated groups, in file order then definition order

    Raises:
        ConfigurationError: On pattern, read, decode or schema errors
        ValidationError: On semantic errors
    """
    patterns = list(patterns)
    files = expand_patterns(patterns)

    groups: List[Group] = []
    for file in files:
        log = bind_context(file=file)

        try:
            file_groups = parse_file(file)
        except RulebookError as exc:
            raise exc.wrap(f"failed to parse file {file!r}", file=file) from exc

        seen_names: set[str] = set()
        for group in file_groups:
            try:
                group.validate(
                    validate_annotations,
                    validate_expressions,
                    expression_validator=expression_validator,
                    template_validator=template_validator,
                )
            except RulebookError as exc:
                raise exc.wrap(
                    f"invalid group {group.name!r} in file {file!r}", file=file, group=group.name
                ) from exc

            if group.name in seen_names:
                raise ValidationError(
                    f"group name {group.name!r} duplicate in file {file!r}",
                    details={"file": file, "group": group.name},
                )
            seen_names.add(group.name)

            groups.append(group.replace(file=file))

        log.debug("rule_file_loaded", groups=len(file_groups))

    if not groups:
        logger.warning("no_groups_found", patterns=";".join(patterns))
    else:
        logger.info("rule_groups_loaded", files=len(files), groups=len(groups))

    return groups


class RuleLoader:
    """
    Loads rule groups and remembers the last successful load.

    Usage:
        loader = RuleLoader(["rules/*.yaml"])
        groups = loader.load()
        ...
        changed = loader.changed_groups(loader.parse())
    """

    def __init__(
        self,
        patterns: Iterable[str],
        *,
        validate_annotations: bool = True,
        validate_expressions: bool = True,
        expression_validator: Optional[ExpressionValidator] = None,
        template_validator: Optional[TemplateValidator] = None,
    ) -> None:
        self.patterns = list(patterns)
        self.validate_annotations = validate_annotations
        self.validate_expressions = validate_expressions
        self.expression_validator = expression_validator
        self.template_validator = template_validator
        self._checksums: Dict[tuple[str, str], str] = {}

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> "RuleLoader":
        """Create a loader from ``rulebook.config.Settings``."""
        return cls(
            settings.rule_paths,
            validate_annotations=settings.validate_templates,
            validate_expressions=settings.validate_expressions,
            **kwargs,
        )

    def parse(self) -> List[Group]:
        """Parse rule files without updating the remembered state."""
        return parse(
            self.patterns,
            self.validate_annotations,
            self.validate_expressions,
            expression_validator=self.expression_validator,
            template_validator=self.template_validator,
        )

    def changed_groups(self, groups: Iterable[Group]) -> List[Group]:
        """
        Return the groups that are new or whose definition changed since
        the last ``load``. Groups are keyed by file and name.
        """
        return [
            group
            for group in groups
            if self._checksums.get((group.file, group.name)) != group.checksum
        ]

    def load(self) -> List[Group]:
        """Parse rule files and remember their checksums."""
        groups = self.parse()
        self._checksums = {(g.file, g.name): g.checksum for g in groups}
        return groups
