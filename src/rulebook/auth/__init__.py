"""Tenant token parsing."""

from rulebook.auth.token import TENANT_PLACEHOLDER, TenantToken, find_token, parse_token

__all__ = ["TENANT_PLACEHOLDER", "TenantToken", "find_token", "parse_token"]
