#!/usr/bin/env python3
"""
Queryflow CLI - Main entry point.

Usage:
    queryflow init                          # Create queryflow.yaml and queries/
    queryflow show <name>                   # Print a stored definition
    queryflow run <name> [--var key=value]  # Resolve a query and print the result
    queryflow serve                         # Run the HTTP API
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from ..core.errors import QueryflowError
from ..runtime.context import create_execution_context
from .config import CONFIG_FILE, QueryflowConfig, load_config

EXAMPLE_QUERY = '''# Example query definition
body: |
  { orders { id total } }
variables: |
  {
    // comments and trailing commas are allowed
    "limit": 10,
  }
'''


def _load(args: argparse.Namespace) -> QueryflowConfig | None:
    config = load_config(args.config)
    if not config:
        print(f"Error: {args.config} not found. Run 'queryflow init' first.", file=sys.stderr)
    return config


def _parse_var(raw: str) -> tuple[str, Any]:
    """Parse ``key=value``; the value is read as JSON when possible."""
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {raw!r}")
    try:
        return key, json.loads(value)
    except ValueError:
        return key, value


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new queryflow project."""
    config_path = Path(args.config)

    if config_path.exists() and not args.force:
        print(f"Error: {config_path} already exists. Use --force to overwrite.")
        return 1

    config = QueryflowConfig.from_dict({
        "version": 1,
        "default_endpoint": "default",
        "endpoints": {
            "default": {"url": args.endpoint, "token_env": "QUERYFLOW_TOKEN"},
        },
    })
    config.save(config_path)
    print(f"Created {config_path}")

    queries_dir = config_path.parent / config.store.path
    queries_dir.mkdir(exist_ok=True)
    example = queries_dir / "Orders.yaml"
    if not example.exists():
        example.write_text(EXAMPLE_QUERY)
        print(f"Created {example}")

    print("\nNext steps:")
    print("  queryflow run Orders     # Resolve the example query")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Print a stored query definition."""
    config = _load(args)
    if not config:
        return 1

    resolver = config.build_resolver(Path(args.config).parent)
    definition = asyncio.run(resolver.store.load(args.name))
    if definition is None:
        print(f"Error: query {args.name!r} not found", file=sys.stderr)
        return 1

    _print_json(definition.model_dump(by_alias=True))
    return 0


async def _run(config: QueryflowConfig, args: argparse.Namespace) -> tuple[Any, list[str]]:
    resolver = config.build_resolver(Path(args.config).parent)
    context = create_execution_context(max_depth=args.max_depth or config.pipeline.max_depth)

    variables = dict(args.var or [])
    time_range = [args.date_from, args.date_to] if args.date_from and args.date_to else None

    try:
        result = await resolver.resolve(
            args.name,
            context,
            default_endpoint=args.endpoint,
            default_credential=args.token,
            variable_overrides=variables,
            time_range=time_range,
        )
    finally:
        await resolver.client.close()
    return result, context.warnings


def cmd_run(args: argparse.Namespace) -> int:
    """Resolve a query and print the cleaned result."""
    config = _load(args)
    if not config:
        return 1

    try:
        result, warnings = asyncio.run(_run(config, args))
    except QueryflowError as e:
        _print_json({"error": e.to_dict()})
        return 1

    for warning in warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    _print_json(result)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API."""
    import uvicorn
    from fastapi import FastAPI

    from ..api import create_queryflow_app

    config = _load(args)
    if not config:
        return 1

    app = FastAPI(title="Queryflow")
    app.include_router(create_queryflow_app(config.build_resolver(Path(args.config).parent)))

    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="queryflow",
        description="Queryflow - resolve named GraphQL queries with chained transformers"
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")
    parser.add_argument("--config", "-c", default=CONFIG_FILE, help="Path to queryflow.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize new project")
    init_parser.add_argument("--endpoint", default="http://localhost:4000/graphql", help="Default GraphQL endpoint")
    init_parser.add_argument("--force", "-f", action="store_true", help="Overwrite existing config")

    # show
    show_parser = subparsers.add_parser("show", help="Print a stored query definition")
    show_parser.add_argument("name", help="Query name")

    # run
    run_parser = subparsers.add_parser("run", help="Resolve a query")
    run_parser.add_argument("name", help="Query name")
    run_parser.add_argument("--var", action="append", type=_parse_var, help="Variable override key=value (repeatable)")
    run_parser.add_argument("--from", dest="date_from", help="First month of the range (YYYY-MM)")
    run_parser.add_argument("--to", dest="date_to", help="Last month of the range (YYYY-MM)")
    run_parser.add_argument("--endpoint", "-e", help="Default endpoint URL")
    run_parser.add_argument("--token", "-t", help="Authorization header for the default endpoint")
    run_parser.add_argument("--max-depth", type=int, help="Maximum dependency depth")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", "-p", type=int, default=8000, help="Port")

    return parser


def app(args: Optional[List[str]] = None) -> int:
    """Main CLI application."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not parsed.command:
        parser.print_help()
        return 0

    commands = {
        "init": cmd_init,
        "show": cmd_show,
        "run": cmd_run,
        "serve": cmd_serve,
    }

    handler = commands.get(parsed.command)
    if handler:
        return handler(parsed)

    parser.print_help()
    return 1


def main() -> None:
    """Entry point for CLI."""
    sys.exit(app())


if __name__ == "__main__":
    main()
