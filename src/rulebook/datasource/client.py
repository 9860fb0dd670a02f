"""
Datasource query client.

Runs instant queries against a Prometheus-compatible HTTP API
(VictoriaMetrics single-node or cluster) and decodes vector results.

Usage:
    client = DatasourceClient("http://vmselect:8481/select/0/prometheus", tenancy=True)
    metrics = await client.query("up == 0", tenant=parse_token("42"))
"""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Any
from urllib.parse import quote_plus

import httpx
import structlog

from rulebook.auth import TENANT_PLACEHOLDER, TenantToken, find_token
from rulebook.core.errors import DatasourceError, TenantTokenError
from rulebook.rules.durations import parse_duration

from .models import Label, Metric

logger = structlog.get_logger()

DEFAULT_USER_AGENT = "rulebook-datasource/0.1.0"

QUERY_PATH = "/api/v1/query?query="

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
RESULT_TYPE_VECTOR = "vector"


def decode_response(payload: Any, url: str = "") -> list[Metric]:
    """
    Decode an instant query response body into metrics.

    Expected shape:
        {"status": "success",
         "data": {"resultType": "vector",
                  "result": [{"metric": {...}, "value": [ts, "1.5"]}]}}

    Raises:
        DatasourceError: On error status, unknown status or result type,
            or values that are not floats
    """
    if not isinstance(payload, dict):
        raise DatasourceError(f"unexpected response for {url}: {payload!r}", {"url": url})

    status = payload.get("status")
    if status == STATUS_ERROR:
        raise DatasourceError(
            f"response error, query: {url}, errorType: {payload.get('errorType', '')}, "
            f"error: {payload.get('error', '')}",
            {"url": url},
        )
    if status != STATUS_SUCCESS:
        raise DatasourceError(f"unknown status: {status}, Expected success or error", {"url": url})

    data = payload.get("data") or {}
    if not isinstance(data, dict):
        raise DatasourceError(f"unexpected data for {url}: {data!r}", {"url": url})

    result_type = data.get("resultType")
    if result_type != RESULT_TYPE_VECTOR:
        raise DatasourceError(f"unknown result type: {result_type}. Expected vector", {"url": url})

    results = data.get("result") or []
    if not isinstance(results, list):
        raise DatasourceError(f"unexpected result for {url}: {results!r}", {"url": url})

    metrics = []
    for res in results:
        sample = res.get("value") if isinstance(res, dict) else None
        try:
            value = float(sample[1])
            timestamp = int(float(sample[0]))
        except (IndexError, TypeError, ValueError) as exc:
            raise DatasourceError(
                f"metric {res}, unable to parse float64 from {sample}: {exc}",
                {"url": url},
            ) from exc

        raw_labels = res.get("metric") or {}
        if not isinstance(raw_labels, dict):
            raise DatasourceError(
                f"metric {res}, unexpected labels {raw_labels!r}", {"url": url}
            )
        labels = [Label(name=k, value=v) for k, v in raw_labels.items()]
        metrics.append(Metric(labels=labels, timestamp=timestamp, value=value))

    return metrics


class DatasourceClient:
    """
    Instant query client for a metrics datasource.

    With ``tenancy`` enabled the base URL must contain the tenant segment
    (``/select/<tenant>/``); it becomes the default tenant and may be
    overridden per query.
    """

    def __init__(
        self,
        base_url: str,
        *,
        basic_auth_user: str | None = None,
        basic_auth_password: str | None = None,
        tenancy: bool = False,
        lookback: timedelta | str = timedelta(0),
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        """
        Initialize datasource client.

        Args:
            base_url: Base URL of the datasource
            basic_auth_user: Basic auth username
            basic_auth_password: Basic auth password; auth is sent only when set
            tenancy: Whether the datasource is multi-tenant
            lookback: Query at now minus lookback instead of now
            transport: httpx transport, e.g. for custom TLS or tests
            timeout: Request timeout in seconds
            user_agent: User agent string

        Raises:
            DatasourceError: If tenancy is enabled and the URL has no tenant
        """
        self._url = base_url.rstrip("/")
        self._tenancy = tenancy
        self._default_tenant: TenantToken | None = None
        self._lookback = parse_duration(lookback)
        self._transport = transport
        self._timeout = timeout
        self._user_agent = user_agent
        self._auth = (basic_auth_user or "", basic_auth_password) if basic_auth_password else None

        if tenancy:
            try:
                self._default_tenant, self._url = find_token(self._url)
            except TenantTokenError as exc:
                raise DatasourceError(
                    f"invalid url addr format: {exc.message}", {"url": base_url}
                ) from exc

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> "DatasourceClient":
        """Create a client from ``rulebook.config.Settings``."""
        return cls(
            settings.datasource_url,
            basic_auth_user=settings.datasource_user,
            basic_auth_password=settings.datasource_password,
            tenancy=settings.datasource_tenancy,
            lookback=settings.datasource_lookback,
            timeout=settings.http_timeout,
            **kwargs,
        )

    @property
    def default_tenant(self) -> TenantToken | None:
        return self._default_tenant

    async def aclose(self) -> None:
        """Close client (for symmetry with other providers)."""
        return None

    def query_url(self, query: str, tenant: TenantToken | None = None) -> str:
        """Build the instant query URL."""
        url = self._url
        if self._tenancy:
            token = tenant or self._default_tenant
            url = url.replace(TENANT_PLACEHOLDER, token.format())

        url = url + QUERY_PATH + quote_plus(query)
        if self._lookback > timedelta(0):
            at = int(time.time() - self._lookback.total_seconds())
            url += f"&time={at}"
        return url

    async def query(self, query: str, tenant: TenantToken | None = None) -> list[Metric]:
        """
        Execute an instant query.

        Args:
            query: Query expression
            tenant: Tenant overriding the default one (tenancy mode only)

        Returns:
            List of Metric samples

        Raises:
            DatasourceError: If the request fails or the response is not a
                successful vector result
        """
        url = self.query_url(query, tenant)
        headers = {"Content-Type": "application/json", "User-Agent": self._user_agent}

        logger.debug("datasource_query", url=url)

        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self._timeout
            ) as client:
                resp = await client.post(
                    url, headers=headers, auth=self._auth  # type: ignore[arg-type]
                )
        except httpx.HTTPError as exc:
            logger.warning("datasource_query_failed", url=url, error=str(exc))
            raise DatasourceError(
                f"error getting response from {url}: {exc}", {"url": url}
            ) from exc

        if resp.status_code != 200:
            raise DatasourceError(
                f"datasource returns unexpected response code {resp.status_code} for {url}. "
                f"Response body {resp.text}",
                {"url": url, "status": resp.status_code},
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise DatasourceError(f"error parsing metrics for {url}: {exc}", {"url": url}) from exc

        return decode_response(payload, url)
