#!/usr/bin/env python3
"""
patchstore - query, diff and patch JSON documents from the command line.

    patchstore query items.json --filter 'lt(key,5)' --sort key --desc
    patchstore query items.json --views views.yaml --view top_rated
    patchstore diff before.json after.json > change.json
    patchstore apply before.json change.json
"""
import sys
import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, List, Optional

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from patchstore.config import StoreConfig, get_config, init_config
from patchstore.errors import ArgumentError, PatchStoreError
from patchstore.patch.patch import Patch, diff
from patchstore.query.parser import parse_filter, parse_queries_file
from patchstore.query.range import Range
from patchstore.query.sort import Sort
from patchstore.store.store import Store

logger = logging.getLogger(__name__)


console = Console()


def load_document(path: str) -> Any:
    """Read a JSON (or YAML, by extension) document."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


def print_json(data: Any) -> None:
    config = get_config()
    print(json.dumps(data, indent=config.json_indent or None, default=str))


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def output_items(items: List[Any], format: str = "table", title: str = "Items"):
    """Output items in the specified format."""
    if format == "json":
        print_json(items)
        return

    columns: List[str] = []
    for item in items:
        if isinstance(item, dict):
            for key in item:
                if key not in columns:
                    columns.append(key)

    table = Table(title=f"{title} ({len(items)})")
    for column in columns or ["value"]:
        table.add_column(str(column), style="cyan" if column == get_config().id_property else None)

    for item in items:
        if isinstance(item, dict):
            table.add_row(*[_cell(item.get(column)) for column in columns])
        else:
            table.add_row(_cell(item))

    console.print(table)


# =============================================================================
# Commands
# =============================================================================

def cmd_query(args) -> int:
    """Run a query pipeline over a JSON array of items."""
    config = get_config()
    data = load_document(args.file)
    if not isinstance(data, list):
        raise ArgumentError(f"{args.file} must contain a list of items")

    store = Store(data)
    view = store

    if args.view:
        views_file = args.views or config.views_file
        if not views_file:
            raise ArgumentError("--view needs --views FILE or views_file in the config")
        views = parse_queries_file(views_file)
        if args.view not in views:
            raise ArgumentError(f"Unknown view {args.view!r} (available: {', '.join(sorted(views))})")
        for query in views[args.view]:
            view = view.query(query)

    if args.filter:
        view = view.filter(parse_filter(args.filter))
    if args.sort:
        view = view.sort(Sort(args.sort, descending=args.desc))
    if args.range:
        view = view.range(Range(*args.range))
    elif args.page:
        view = view.range(Range((args.page - 1) * config.page_size, config.page_size))

    items = view.fetch()
    logger.debug(f"Query matched {len(items)} of {len(store)} items")
    output_items(items, args.format or args.output, title=args.view or "Items")
    return 0


def cmd_diff(args) -> int:
    """Print the patch that turns one document into another."""
    patch = diff(load_document(args.source), load_document(args.target))
    print_json(patch.to_list())
    return 0


def cmd_apply(args) -> int:
    """Apply a patch file to a document and print the result."""
    document = load_document(args.document)
    patch = Patch.from_list(load_document(args.patch))
    print_json(patch.apply(document))
    return 0


def cmd_config(args) -> int:
    """Manage configuration."""
    config = get_config()

    if args.action == "show":
        if args.key:
            if not hasattr(config, args.key):
                console.print(f"[red]Unknown config key: {args.key}[/red]")
                return 1
            print(getattr(config, args.key))
        else:
            print(json.dumps(asdict(config), indent=2))

    elif args.action == "init":
        path = config.save(Path(args.path) if args.path else None)
        console.print(f"[green]Created config at {path}[/green]")

    return 0


# =============================================================================
# Entry point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="patchstore",
        description="patchstore: query, diff and patch JSON documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  patchstore query items.json --filter 'lte(key,5)|eq(id,"7")' --sort key
  patchstore query items.json --views views.yaml --view recent --output json
  patchstore diff old.json new.json
  patchstore apply old.json patch.json
  patchstore config show

Configuration:
  Config file: ~/.config/patchstore/config.toml or ./patchstore.toml
  Environment: PATCHSTORE_ID_PROPERTY, PATCHSTORE_OUTPUT_FORMAT, PATCHSTORE_LOG_LEVEL
        """
    )

    parser.add_argument("--config", help="Config file path")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    parser.add_argument("-o", "--output", choices=["table", "json"], help="Output format")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Commands")

    query_parser = subparsers.add_parser("query", help="Filter, sort and slice a list of items")
    query_parser.add_argument("file", help="JSON or YAML file holding a list of items")
    query_parser.add_argument("--filter", help="Filter query string, e.g. 'lt(key,5)&eq(id,\"1\")'")
    query_parser.add_argument("--sort", help="Field or pointer to sort by")
    query_parser.add_argument("--desc", action="store_true", help="Sort descending")
    query_parser.add_argument("--range", nargs=2, type=int, metavar=("START", "COUNT"),
                              help="Take COUNT items from START")
    query_parser.add_argument("--page", type=int, help="Page number (page_size from config)")
    query_parser.add_argument("--view", help="Named query from the views file")
    query_parser.add_argument("--views", help="YAML file of named queries")
    query_parser.add_argument("--format", choices=["table", "json"], help="Output format (overrides -o)")
    query_parser.set_defaults(func=cmd_query)

    diff_parser = subparsers.add_parser("diff", help="Compute a patch between two documents")
    diff_parser.add_argument("source", help="Original document")
    diff_parser.add_argument("target", help="Changed document")
    diff_parser.set_defaults(func=cmd_diff)

    apply_parser = subparsers.add_parser("apply", help="Apply a patch to a document")
    apply_parser.add_argument("document", help="Document to patch")
    apply_parser.add_argument("patch", help="JSON array of patch operations")
    apply_parser.set_defaults(func=cmd_apply)

    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_parser.add_argument("action", choices=["show", "init"], help="Action")
    config_parser.add_argument("key", nargs="?", help="Config key (show)")
    config_parser.add_argument("--path", help="Where to write the config file (init)")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config:
        get_config(reload=True, config_file=Path(args.config))

    config: StoreConfig = init_config(output_format=args.output, log_level=args.log_level)
    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO),
                        format="%(levelname)s %(name)s: %(message)s")

    if not args.output:
        args.output = config.output_format

    if args.command == "query" and args.page is not None and args.page < 1:
        parser.error("--page must be 1 or greater")

    try:
        return args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        return 130
    except (PatchStoreError, OSError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
