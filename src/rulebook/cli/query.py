"""
Query command.

Runs one instant query through the datasource client and prints samples.
"""

from __future__ import annotations

import asyncio

from rulebook.auth import parse_token
from rulebook.cli.ux import print_table, warning
from rulebook.config.settings import Settings
from rulebook.core.errors import ExitCode
from rulebook.datasource import DatasourceClient


def query_command(
    expr: str,
    settings: Settings,
    tenant: str | None = None,
    url: str | None = None,
) -> int:
    """
    Execute an instant query and print the result.

    Raises:
        RulebookError: If the tenant is invalid or the query fails
    """
    if url:
        settings = settings.model_copy(update={"datasource_url": url})

    client = DatasourceClient.from_settings(settings)
    token = parse_token(tenant) if tenant is not None else None

    metrics = asyncio.run(client.query(expr, tenant=token))

    if not metrics:
        warning("Query returned no samples")
        return ExitCode.SUCCESS

    rows = [
        [
            ", ".join(
                f'{lbl.name}="{lbl.value}"' for lbl in sorted(m.labels, key=lambda x: x.name)
            ),
            str(m.timestamp),
            repr(m.value),
        ]
        for m in metrics
    ]
    print_table(expr, ["Labels", "Timestamp", "Value"], rows)
    return ExitCode.SUCCESS
