"""
Tenant tokens for multi-tenant datasources.

A token is ``<accountID>[:<projectID>]``; both parts are unsigned 32-bit
integers. An empty string is the default tenant ``0``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from rulebook.core.errors import TenantTokenError

MAX_ID = 2**32 - 1

TENANT_PLACEHOLDER = "{tenant}"

_URL_TOKEN_PATTERN = re.compile(r"/(insert|select)/([^/]+)(/|$)")


@dataclass(frozen=True)
class TenantToken:
    """Multi-tenancy scope: account and optional project."""

    account_id: int = 0
    project_id: int = 0

    def format(self) -> str:
        if self.project_id:
            return f"{self.account_id}:{self.project_id}"
        return str(self.account_id)

    def __str__(self) -> str:
        return self.format()


def _parse_id(value: str, kind: str, token: str) -> int:
    if not (value.isascii() and value.isdigit()):
        raise TenantTokenError(
            f"cannot parse {kind} from {value!r} in tenant {token!r}",
            details={"tenant": token},
        )
    n = int(value)
    if n > MAX_ID:
        raise TenantTokenError(
            f"{kind} {n} in tenant {token!r} exceeds {MAX_ID}",
            details={"tenant": token},
        )
    return n


def parse_token(token: str) -> TenantToken:
    """
    Parse a tenant token string.

    Args:
        token: ``"<account>"`` or ``"<account>:<project>"``; may be empty

    Returns:
        TenantToken

    Raises:
        TenantTokenError: If the token is malformed
    """
    if token == "":
        return TenantToken()

    parts = token.split(":")
    if len(parts) > 2:
        raise TenantTokenError(
            f"unexpected number of items in tenant {token!r}; got {len(parts)}; want 1 or 2",
            details={"tenant": token},
        )

    account_id = _parse_id(parts[0], "accountID", token)
    project_id = _parse_id(parts[1], "projectID", token) if len(parts) > 1 else 0
    return TenantToken(account_id=account_id, project_id=project_id)


def find_token(url: str) -> tuple[TenantToken, str]:
    """
    Find the tenant segment in a cluster URL.

    ``http://vmselect:8481/select/0/prometheus`` yields ``TenantToken(0)`` and
    ``http://vmselect:8481/select/{tenant}/prometheus``.

    Raises:
        TenantTokenError: If the URL has no ``/insert/<tenant>`` or
            ``/select/<tenant>`` segment, or the segment is malformed
    """
    match = _URL_TOKEN_PATTERN.search(url)
    if match is None:
        raise TenantTokenError(
            f"cannot find tenant in url {url!r}; expected /insert/<tenant>/ or /select/<tenant>/",
            details={"url": url},
        )

    token = parse_token(match.group(2))
    formatter = url[: match.start(2)] + TENANT_PLACEHOLDER + url[match.end(2) :]
    return token, formatter
