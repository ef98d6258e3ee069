#!/usr/bin/env python3
"""
Command-line interface for grocery-matcher.
Matches recipe ingredients against supermarket catalogs and checks catalog health.
"""

import argparse
import asyncio
import logging
import sys
from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .catalog import CatalogRegistry, DiaCatalog, MercadonaCatalog
from .catalog.client import CatalogClient
from .config import MatcherConfig
from .exceptions import ConfigurationError
from .matching import ProductMatcher, explain_match
from .models import GroceryItem, ProductMatch

console = Console()

SOURCE_FACTORIES: Dict[str, Callable[[], CatalogClient]] = {
    "mercadona": MercadonaCatalog,
    "dia": DiaCatalog,
}

_HEALTH_STYLES = {"active": "green", "degraded": "yellow", "broken": "red"}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()]
    )

    # Reduce verbosity of HTTP client loggers
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_registry(source_ids: List[str]) -> CatalogRegistry:
    """Instantiate the catalog clients for the requested sources."""
    registry = CatalogRegistry()
    for source_id in dict.fromkeys(source_ids):
        factory = SOURCE_FACTORIES.get(source_id)
        if factory is None:
            raise ConfigurationError(f"Unknown catalog source '{source_id}'")
        registry.register(factory())
    return registry


def _euros(cents: int) -> str:
    return f"€{cents / 100:.2f}"


def print_matches(source_id: str, items: List[GroceryItem], show_alternatives: bool) -> None:
    console.print(f"\n[bold]{source_id}[/bold]")

    table = Table(show_header=True, header_style="bold", padding=(0, 1))
    table.add_column("Ingredient", min_width=15)
    table.add_column("Product", min_width=30)
    table.add_column("Type", min_width=10)
    table.add_column("Confidence", justify="right")
    table.add_column("Packages", justify="right")
    table.add_column("Cost", justify="right")

    total_cents = 0
    for item in items:
        match: ProductMatch = item.selected_match
        found = match.match_type != "not_found"
        total_cents += match.total_cost_cents
        table.add_row(
            item.ingredient_name,
            match.product.name if found else "[red]not found[/red]",
            match.match_type,
            f"{match.confidence:.0%}",
            str(match.quantity_to_buy),
            _euros(match.total_cost_cents),
        )
    console.print(table)
    console.print(f"  [bold]Total:[/bold] {_euros(total_cents)}")

    for item in items:
        match = item.selected_match
        console.print(f"  [dim]{explain_match(match)}[/dim]")
        if show_alternatives:
            for alternative in match.alternatives:
                console.print(
                    f"    - {alternative.product.name} "
                    f"({_euros(alternative.product.price.current_cents)}, "
                    f"{alternative.confidence:.0%}): {alternative.reason}"
                )


def print_health(results) -> None:
    table = Table(show_header=True, header_style="bold", padding=(0, 1))
    table.add_column("Source", min_width=10)
    table.add_column("Status", min_width=10)
    table.add_column("Latency", justify="right")
    table.add_column("Errors", min_width=30)

    for source_id, health in results.items():
        style = _HEALTH_STYLES.get(health.status, "white")
        table.add_row(
            str(source_id),
            f"[{style}]{health.status}[/{style}]",
            f"{health.response_time_ms:.0f} ms",
            "; ".join(health.errors),
        )
    console.print(table)


async def main_async(args: argparse.Namespace) -> int:
    """Run the selected command."""
    try:
        config = MatcherConfig.from_env()
        registry = build_registry(args.source or ["mercadona"])
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        return 1

    try:
        if args.command == "health":
            results = await registry.health_check_all()
            print_health(results)
            return 0

        matcher = ProductMatcher(registry, config)
        items = [
            GroceryItem(
                ingredient_name=name,
                needed_quantity=args.quantity,
                needed_unit=args.unit,
            )
            for name in args.ingredients
        ]
        results = await matcher.match_grocery_list_multiple(items, registry.source_ids)
        for source_id, matched in results.items():
            print_matches(source_id, matched, args.alternatives)
        return 0
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        return 1
    finally:
        await registry.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command-line interface."""
    parser = argparse.ArgumentParser(
        description="Match recipe ingredients to supermarket products"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    source_help = f"Catalog source, repeatable (choices: {', '.join(SOURCE_FACTORIES)}; default: mercadona)"

    match_parser = subparsers.add_parser("match", help="Match ingredients to products")
    match_parser.add_argument("ingredients", nargs="+", help="Ingredient names, e.g. 'diced tomatoes'")
    match_parser.add_argument(
        "--quantity", "-q",
        type=float,
        default=1.0,
        help="Quantity needed of each ingredient (default: 1)"
    )
    match_parser.add_argument(
        "--unit", "-u",
        default="piece",
        help="Unit of the quantity: g, kg, ml, l, tsp, tbsp, cup, piece (default: piece)"
    )
    match_parser.add_argument(
        "--source", "-s",
        action="append",
        choices=list(SOURCE_FACTORIES),
        help=source_help
    )
    match_parser.add_argument(
        "--alternatives", "-a",
        action="store_true",
        help="Also list alternative products"
    )

    health_parser = subparsers.add_parser("health", help="Check catalog availability")
    health_parser.add_argument(
        "--source", "-s",
        action="append",
        choices=list(SOURCE_FACTORIES),
        help=source_help
    )

    for sub in (match_parser, health_parser):
        sub.add_argument(
            "--verbose", "-v",
            action="store_true",
            help="Enable verbose logging with detailed information"
        )

    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)

    # Run the async main function
    return asyncio.run(main_async(args))


if __name__ == "__main__":
    sys.exit(main())
