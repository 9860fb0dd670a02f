"""Tests for rule file loading.

Tests for glob expansion, YAML decoding, global defaults, strict schema,
per-file uniqueness and the all-or-nothing failure policy.
"""

import sys
from datetime import timedelta

import pytest
from structlog.testing import capture_logs

from rulebook.auth import TenantToken, parse_token
from rulebook.core.errors import (
    ConfigurationError,
    ExpressionError,
    UnknownFieldsError,
    ValidationError,
)
from rulebook.rules.hashing import hash_rule
from rulebook.rules.loader import RuleLoader, apply_global, expand_patterns, parse, parse_file
from rulebook.rules.models import Global, Group, Rule

BASIC_RULES = """
global:
  tenant: "0"
groups:
  - name: g1
    rules:
      - record: r1
        expr: up
      - alert: a1
        expr: up == 0
        for: 5m
"""


class TestApplyGlobal:
    """Tests for global default application."""

    def test_fills_empty_tenant(self):
        groups = apply_global([Group(name="a")], Global(tenant="7"))
        assert groups[0].tenant == "7"

    def test_group_tenant_wins(self):
        groups = apply_global([Group(name="a"), Group(name="b", tenant="3")], Global(tenant="7"))
        assert [g.tenant for g in groups] == ["7", "3"]

    def test_no_global(self):
        original = [Group(name="a")]
        groups = apply_global(original, None)
        assert groups == original
        assert groups is not original

    def test_does_not_mutate_input(self):
        original = [Group(name="a")]
        apply_global(original, Global(tenant="7"))
        assert original[0].tenant == ""


class TestExpandPatterns:
    """Tests for glob expansion."""

    def test_matches_sorted(self, write_rules, tmp_path):
        write_rules("b.yaml", BASIC_RULES)
        write_rules("a.yaml", BASIC_RULES)

        files = expand_patterns([str(tmp_path / "*.yaml")])

        assert files == [str(tmp_path / "a.yaml"), str(tmp_path / "b.yaml")]

    def test_no_matches(self, tmp_path):
        assert expand_patterns([str(tmp_path / "*.yaml")]) == []

    def test_bad_pattern(self, tmp_path):
        with pytest.raises(ConfigurationError, match="error reading file pattern"):
            expand_patterns([str(tmp_path / "[.yaml")])

    def test_character_class_allowed(self, write_rules, tmp_path):
        write_rules("a1.yaml", BASIC_RULES)
        assert expand_patterns([str(tmp_path / "a[0-9].yaml")]) == [str(tmp_path / "a1.yaml")]

    @pytest.mark.skipif(sys.version_info < (3, 11), reason="glob include_hidden needs 3.11")
    def test_matches_dotfiles(self, write_rules, tmp_path):
        write_rules(".hidden.yaml", BASIC_RULES)
        write_rules("a.yaml", BASIC_RULES)

        files = expand_patterns([str(tmp_path / "*.yaml")])

        assert files == [str(tmp_path / ".hidden.yaml"), str(tmp_path / "a.yaml")]


class TestParseFile:
    """Tests for single file decoding."""

    def test_basic(self, write_rules):
        path = write_rules("rules.yaml", BASIC_RULES)

        groups = parse_file(path)

        assert len(groups) == 1
        assert groups[0].tenant == "0"
        assert groups[0].checksum
        assert all(rule.id for rule in groups[0].rules)

    def test_empty_file(self, write_rules):
        assert parse_file(write_rules("empty.yaml", "")) == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="error reading alert rule file"):
            parse_file(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, write_rules):
        path = write_rules("bad.yaml", "groups: [\n  - name: x\n")
        with pytest.raises(ConfigurationError, match="error decoding YAML"):
            parse_file(path)

    def test_non_mapping_document(self, write_rules):
        with pytest.raises(ConfigurationError, match="config must be a mapping"):
            parse_file(write_rules("list.yaml", "- a\n- b\n"))

    def test_unknown_top_level_key(self, write_rules):
        path = write_rules("extra.yaml", BASIC_RULES + "rule_files: []\n")

        with pytest.raises(UnknownFieldsError, match="unknown fields in config: rule_files"):
            parse_file(path)

    def test_unknown_global_key(self, write_rules):
        path = write_rules(
            "global.yaml",
            """
            global:
              tenant: "1"
              interval: 1m
            groups: []
            """,
        )
        with pytest.raises(UnknownFieldsError, match="unknown fields in global: interval"):
            parse_file(path)

    def test_environment_substitution(self, write_rules, monkeypatch):
        monkeypatch.setenv("RULES_TENANT", "42")
        path = write_rules(
            "env.yaml",
            """
            groups:
              - name: g
                tenant: "%{RULES_TENANT}"
                rules:
                  - record: r
                    expr: up
            """,
        )

        assert parse_file(path)[0].tenant == "42"

    def test_plain_scalars_keep_source_text(self, write_rules):
        path = write_rules(
            "scalars.yaml",
            """
            global:
              tenant: 1:30
            groups:
              - name: 2024
                rules:
                  - alert: a
                    expr: up == 0
                    labels:
                      version: 1.10
                      paging: yes
                      mode: 0755
                      since: 2024-01-01
                      owner: ~
            """,
        )

        group = parse_file(path)[0]

        assert group.tenant == "1:30"
        assert group.name == "2024"
        labels = {
            "version": "1.10",
            "paging": "yes",
            "mode": "0755",
            "since": "2024-01-01",
            "owner": "",
        }
        assert group.rules[0].labels == labels
        assert group.rules[0].id == hash_rule(Rule(alert="a", expr="up == 0", labels=labels))

    def test_quoting_does_not_change_checksum(self, write_rules):
        template = """
            groups:
              - name: g
                tenant: {tenant}
                rules:
                  - record: r
                    expr: up
                    labels:
                      version: {version}
            """
        plain = write_rules("plain.yaml", template.format(tenant="1:30", version="1.10"))
        quoted = write_rules("quoted.yaml", template.format(tenant='"1:30"', version='"1.10"'))

        assert parse_file(plain)[0].checksum == parse_file(quoted)[0].checksum

    def test_numeric_fields_from_plain_scalars(self, write_rules):
        path = write_rules(
            "numbers.yaml",
            """
            groups:
              - name: g
                interval: 30
                concurrency: 4
                rules:
                  - alert: a
                    expr: up == 0
                    for: 5m
            """,
        )

        group = parse_file(path)[0]

        assert group.interval == timedelta(seconds=30)
        assert group.concurrency == 4
        assert group.rules[0].for_ == timedelta(minutes=5)


class TestParse:
    """Tests for multi-file loading."""

    def test_end_to_end(self, write_rules, tmp_path):
        path = write_rules("rules.yaml", BASIC_RULES)

        groups = parse([str(tmp_path / "*.yaml")], True, True)

        assert len(groups) == 1
        group = groups[0]
        assert group.name == "g1"
        assert group.tenant == "0"
        assert group.file == str(path)
        assert group.checksum != ""
        assert len(group.rules) == 2
        r1, a1 = group.rules
        assert r1.record == "r1" and r1.expr == "up"
        assert a1.alert == "a1" and a1.for_ == timedelta(minutes=5)
        assert r1.id != 0 and a1.id != 0
        assert r1.id != a1.id

    def test_account_project_tenant(self, write_rules):
        path = write_rules(
            "tenant.yaml",
            """
            global:
              tenant: 1:30
            groups:
              - name: g
                rules:
                  - record: r
                    expr: up
            """,
        )

        group = parse([str(path)], True, True)[0]

        assert group.tenant == "1:30"
        assert parse_token(group.tenant) == TenantToken(account_id=1, project_id=30)

    def test_global_tenant_applies_only_to_unset_groups(self, write_rules):
        path = write_rules(
            "tenants.yaml",
            """
            global:
              tenant: "7"
            groups:
              - name: A
                rules:
                  - record: r
                    expr: up
              - name: B
                tenant: "3"
                rules:
                  - record: r
                    expr: up
            """,
        )

        groups = parse([str(path)], False, False)

        assert {g.name: g.tenant for g in groups} == {"A": "7", "B": "3"}

    def test_same_group_name_in_different_files(self, write_rules, tmp_path):
        content = """
        groups:
          - name: alerts
            rules:
              - alert: a
                expr: up == 0
        """
        write_rules("one.yaml", content)
        write_rules("two.yaml", content)

        groups = parse([str(tmp_path / "*.yaml")], False, False)

        assert [g.name for g in groups] == ["alerts", "alerts"]
        assert groups[0].file != groups[1].file

    def test_duplicate_group_name_in_one_file(self, write_rules):
        path = write_rules(
            "dup.yaml",
            """
            groups:
              - name: alerts
                rules:
                  - alert: a
                    expr: up == 0
              - name: alerts
                rules:
                  - alert: b
                    expr: up == 0
            """,
        )

        with pytest.raises(ValidationError, match="group name 'alerts' duplicate in file"):
            parse([str(path)], False, False)

    def test_unknown_rule_field(self, write_rules):
        path = write_rules(
            "unknown.yaml",
            """
            groups:
              - name: g
                rules:
                  - record: r
                    expr: up
                    foo: bar
            """,
        )

        with pytest.raises(UnknownFieldsError) as exc_info:
            parse([str(path)], False, False)

        assert exc_info.value.fields == ["foo"]
        assert "invalid group 'g' in file" in exc_info.value.message
        assert exc_info.value.details["file"] == str(path)

    def test_unknown_group_field(self, write_rules):
        path = write_rules(
            "unknown.yaml",
            """
            groups:
              - name: g
                evaluation: 1m
                rules:
                  - record: r
                    expr: up
            """,
        )

        with pytest.raises(UnknownFieldsError, match="evaluation"):
            parse([str(path)], False, False)

    def test_invalid_group_fails_whole_load(self, write_rules, tmp_path):
        write_rules("a.yaml", BASIC_RULES)
        write_rules(
            "b.yaml",
            """
            groups:
              - name: broken
                rules:
                  - expr: up
            """,
        )

        with pytest.raises(ValidationError) as exc_info:
            parse([str(tmp_path / "*.yaml")], False, False)

        assert "invalid group 'broken'" in exc_info.value.message
        assert exc_info.value.details["group"] == "broken"

    def test_parse_error_names_file(self, write_rules):
        path = write_rules("bad.yaml", "groups: {\n")

        with pytest.raises(ConfigurationError) as exc_info:
            parse([str(path)], False, False)

        assert f"failed to parse file '{path}'" in exc_info.value.message

    def test_bad_pattern_aborts_before_reading(self, write_rules, tmp_path):
        write_rules("a.yaml", BASIC_RULES)

        with pytest.raises(ConfigurationError, match="error reading file pattern"):
            parse([str(tmp_path / "*.yaml"), str(tmp_path / "[")], False, False)

    def test_no_groups_is_warning(self, tmp_path):
        with capture_logs() as logs:
            groups = parse([str(tmp_path / "*.yaml")], False, False)

        assert groups == []
        assert any(
            log["event"] == "no_groups_found" and log["log_level"] == "warning" for log in logs
        )

    def test_validation_flags_are_passed(self, write_rules):
        path = write_rules(
            "expr.yaml",
            """
            groups:
              - name: g
                rules:
                  - record: r
                    expr: sum(up
            """,
        )

        assert len(parse([str(path)], False, False)) == 1
        with pytest.raises(ValidationError, match="invalid expression"):
            parse([str(path)], False, True)

    def test_checksum_ignores_formatting(self, write_rules):
        a = write_rules(
            "a.yaml",
            """
            groups:
              - name: g
                interval: 30s
                rules:
                  - alert: a
                    expr: up == 0
                    labels: {severity: critical, team: core}
            """,
        )
        b = write_rules(
            "b.yaml",
            """
            groups:
            -   rules:
                -   labels:
                        team: core
                        severity: critical
                    expr:   "up == 0"
                    alert: a
                interval: "30s"
                name: g
            """,
        )

        ga = parse([str(a)], False, False)[0]
        gb = parse([str(b)], False, False)[0]

        assert ga.checksum == gb.checksum

    def test_checksum_detects_rule_reordering(self, write_rules):
        a = write_rules(
            "a.yaml",
            """
            groups:
              - name: g
                rules:
                  - record: r1
                    expr: up
                  - record: r2
                    expr: up
            """,
        )
        b = write_rules(
            "b.yaml",
            """
            groups:
              - name: g
                rules:
                  - record: r2
                    expr: up
                  - record: r1
                    expr: up
            """,
        )

        first, second = parse([str(a)], False, False), parse([str(b)], False, False)
        assert first[0].checksum != second[0].checksum


class TestRuleLoader:
    """Tests for the reloading loader."""

    def test_load(self, write_rules, tmp_path):
        write_rules("rules.yaml", BASIC_RULES)
        loader = RuleLoader([str(tmp_path / "*.yaml")])

        groups = loader.load()

        assert [g.name for g in groups] == ["g1"]

    def test_changed_groups(self, write_rules, tmp_path):
        path = write_rules("rules.yaml", BASIC_RULES)
        loader = RuleLoader([str(tmp_path / "*.yaml")])
        loader.load()

        assert loader.changed_groups(loader.parse()) == []

        path.write_text(BASIC_RULES.replace("expr: up\n", "expr: up > 0\n"))
        changed = loader.changed_groups(loader.parse())

        assert [g.name for g in changed] == ["g1"]

    def test_everything_changed_before_first_load(self, write_rules, tmp_path):
        write_rules("rules.yaml", BASIC_RULES)
        loader = RuleLoader([str(tmp_path / "*.yaml")])

        assert len(loader.changed_groups(loader.parse())) == 1

    def test_from_settings(self, write_rules, tmp_path):
        from rulebook.config.settings import Settings

        write_rules("rules.yaml", BASIC_RULES)
        settings = Settings(
            rule_paths=[str(tmp_path / "*.yaml")],
            validate_templates=False,
            validate_expressions=False,
        )

        loader = RuleLoader.from_settings(settings)

        assert loader.validate_annotations is False
        assert loader.validate_expressions is False
        assert len(loader.load()) == 1

    def test_groups_are_frozen(self, write_rules, tmp_path):
        write_rules("rules.yaml", BASIC_RULES)
        group = RuleLoader([str(tmp_path / "*.yaml")]).load()[0]

        with pytest.raises(AttributeError):
            group.name = "other"
        assert isinstance(group.rules[0], Rule)

    def test_stricter_expression_validator(self, write_rules, tmp_path):
        class NoRepeatedOperators:
            def validate(self, expr):
                if "===" in expr:
                    raise ExpressionError(f"bad operator in {expr}")

        write_rules(
            "rules.yaml",
            """
            groups:
              - name: g
                rules:
                  - alert: a
                    expr: up ==== 0
            """,
        )
        pattern = str(tmp_path / "*.yaml")

        assert len(RuleLoader([pattern]).load()) == 1
        loader = RuleLoader([pattern], expression_validator=NoRepeatedOperators())
        with pytest.raises(ValidationError, match="bad operator"):
            loader.load()
