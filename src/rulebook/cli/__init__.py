"""rulebook command line interface."""

from __future__ import annotations

import argparse
from typing import Sequence

from rulebook.cli.query import query_command
from rulebook.cli.validate import validate_command
from rulebook.config.settings import get_settings
from rulebook.core.errors import main_with_error_handling
from rulebook.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rulebook", description="Recording and alerting rule tooling"
    )
    subparsers = parser.add_subparsers(dest="command")

    validate_parser = subparsers.add_parser(
        "validate", help="Parse and validate rule files, then exit"
    )
    validate_parser.add_argument(
        "patterns", nargs="*", help="Rule file glob patterns (default: RULEBOOK_RULE_PATHS)"
    )
    validate_parser.add_argument(
        "--no-validate-templates",
        dest="validate_templates",
        action="store_false",
        default=None,
        help="Skip label and annotation template checks",
    )
    validate_parser.add_argument(
        "--no-validate-expressions",
        dest="validate_expressions",
        action="store_false",
        default=None,
        help="Skip expression syntax checks",
    )

    query_parser = subparsers.add_parser(
        "query", help="Run an instant query against the datasource"
    )
    query_parser.add_argument("expr", help="Query expression")
    query_parser.add_argument("--tenant", help="Tenant overriding the URL default", default=None)
    query_parser.add_argument(
        "--url", help="Datasource URL (default: RULEBOOK_DATASOURCE_URL)", default=None
    )

    return parser


@main_with_error_handling()
def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)

    if args.command == "validate":
        validate_templates = args.validate_templates
        if validate_templates is None:
            validate_templates = settings.validate_templates
        validate_expressions = args.validate_expressions
        if validate_expressions is None:
            validate_expressions = settings.validate_expressions

        return validate_command(
            args.patterns or settings.rule_paths,
            validate_templates=validate_templates,
            validate_expressions=validate_expressions,
        )

    if args.command == "query":
        return query_command(args.expr, settings, tenant=args.tenant, url=args.url)

    parser.print_help()
    return 1
