"""Tests for tenant token parsing."""

import pytest
from rulebook.auth import TenantToken, find_token, parse_token
from rulebook.core.errors import TenantTokenError, ValidationError


class TestParseToken:
    """Tests for parse_token."""

    def test_account_only(self):
        token = parse_token("42")
        assert token == TenantToken(account_id=42, project_id=0)
        assert str(token) == "42"

    def test_account_and_project(self):
        token = parse_token("1:2")
        assert token == TenantToken(account_id=1, project_id=2)
        assert token.format() == "1:2"

    def test_zero_project_formats_as_account(self):
        assert parse_token("5:0").format() == "5"

    def test_empty_is_default(self):
        assert parse_token("") == TenantToken()
        assert str(parse_token("")) == "0"

    def test_max_value(self):
        assert parse_token("4294967295").account_id == 2**32 - 1

    @pytest.mark.parametrize("value", ["abc", "1:2:3", "-1", "1:", ":1", "4294967296", "1.5", " 1"])
    def test_invalid(self, value):
        with pytest.raises(TenantTokenError):
            parse_token(value)

    def test_is_validation_error(self):
        with pytest.raises(ValidationError):
            parse_token("x")


class TestFindToken:
    """Tests for finding the tenant in a cluster URL."""

    def test_select_url(self):
        token, formatter = find_token("http://vmselect:8481/select/0/prometheus")

        assert token == TenantToken(0)
        assert formatter == "http://vmselect:8481/select/{tenant}/prometheus"

    def test_insert_url_with_project(self):
        token, formatter = find_token("http://vminsert:8480/insert/3:4/prometheus")

        assert token == TenantToken(3, 4)
        assert formatter == "http://vminsert:8480/insert/{tenant}/prometheus"

    def test_trailing_tenant(self):
        token, formatter = find_token("http://vmselect:8481/select/12")

        assert token == TenantToken(12)
        assert formatter == "http://vmselect:8481/select/{tenant}"

    def test_missing_tenant(self):
        with pytest.raises(TenantTokenError, match="cannot find tenant"):
            find_token("http://victoria:8428")

    def test_malformed_tenant(self):
        with pytest.raises(TenantTokenError):
            find_token("http://vmselect:8481/select/abc/prometheus")
