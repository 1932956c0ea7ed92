"""
Command-line interface for drugalts.

Commands:
- load: Index a JSONL medicine catalog into Weaviate
- stats: Show catalog collection statistics
- show: Print one medicine
- alternatives: Find ranked alternatives for a medicine
"""

import json
import random
import sys
from contextlib import contextmanager
from typing import Generator

import click
from rich.console import Console
from rich.table import Table

from drugalts.config import settings
from drugalts.errors import (
    InvalidInputError,
    MedicineNotFoundError,
    RequestCancelledError,
    StoreUnavailableError,
)
from drugalts.logging import configure_logging

console = Console()

# Distinct exit codes so scripts can tell failures apart
EXIT_INVALID_INPUT = 2
EXIT_NOT_FOUND = 3
EXIT_STORE_UNAVAILABLE = 4
EXIT_CANCELLED = 5


@contextmanager
def open_store(catalog: str | None, seed: int | None = None) -> Generator:
    """Open the JSONL catalog if given, otherwise the Weaviate catalog."""
    rng = random.Random(seed) if seed is not None else None

    if catalog:
        from drugalts.catalog.memory import InMemoryCatalogStore

        yield InMemoryCatalogStore.from_jsonl(catalog, rng=rng)
        return

    from weaviate.exceptions import WeaviateBaseError
    from drugalts.catalog.client import WeaviateCatalogStore

    try:
        store = WeaviateCatalogStore(rng=rng)
    except WeaviateBaseError as e:
        console.print(f"[red]Cannot connect to Weaviate at {settings.weaviate_url}: {e}[/red]")
        sys.exit(EXIT_STORE_UNAVAILABLE)

    with store:
        yield store


def _format_price(price: float | None) -> str:
    return f"{price:.2f}" if price is not None and price > 0 else "n/a"


@click.group()
@click.version_option(package_name="drugalts")
def main() -> None:
    """drugalts - find alternative medicines in a catalog."""
    configure_logging()


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--reset", is_flag=True, help="Delete existing medicines before loading")
def load(input_file: str, reset: bool) -> None:
    """Index a JSONL medicine catalog into Weaviate."""
    from drugalts.catalog.memory import load_medicines_from_jsonl

    console.print(f"[yellow]Loading medicines from {input_file}...[/yellow]")
    medicines = load_medicines_from_jsonl(input_file)
    console.print(f"[blue]Loaded {len(medicines)} medicines[/blue]")

    with open_store(None) as store:
        if reset:
            console.print("[yellow]Resetting collection...[/yellow]")
            store.delete_all()

        indexed = store.index_medicines(medicines)
        stats = store.get_stats()
        console.print(f"[green]✓ Indexed {indexed} medicines. Total: {stats['count']}[/green]")


@main.command()
def stats() -> None:
    """Show catalog collection statistics."""
    with open_store(None) as store:
        stats = store.get_stats()

    if not stats["exists"]:
        console.print(f"[yellow]Collection {stats['name']} does not exist. Run: drugalts load[/yellow]")
        return

    console.print(f"[blue]Collection:[/blue] {stats['name']}")
    console.print(f"[blue]Medicines:[/blue] {stats['count']}")


@main.command()
@click.argument("medicine_id")
@click.option("--catalog", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Read from a JSONL catalog instead of Weaviate")
def show(medicine_id: str, catalog: str | None) -> None:
    """Print one medicine."""
    with open_store(catalog) as store:
        medicine = store.find_by_id(medicine_id)

    if medicine is None:
        console.print(f"[red]Medicine not found: {medicine_id}[/red]")
        sys.exit(EXIT_NOT_FOUND)

    console.print(f"[bold]{medicine.name}[/bold] ({medicine.id})")
    console.print(f"[blue]Composition:[/blue] {medicine.composition}")
    console.print(f"[blue]Ingredients:[/blue] {', '.join(medicine.ingredients) or 'n/a'}")
    console.print(f"[blue]Manufacturer:[/blue] {medicine.manufacturer}")
    console.print(f"[blue]Category:[/blue] {medicine.category}")
    console.print(f"[blue]Price:[/blue] {_format_price(medicine.price)}")
    console.print(f"[blue]Prescription:[/blue] {'yes' if medicine.prescription_required else 'no'}")
    if medicine.side_effects_list:
        console.print(f"[blue]Side effects:[/blue] {', '.join(medicine.side_effects_list)}")


@main.command()
@click.argument("medicine_id")
@click.option("--min-score", default=settings.default_min_score, type=float, show_default=True,
              help="Minimum similarity score (0-1)")
@click.option("--max-results", default=settings.default_max_results, type=int, show_default=True,
              help="Maximum number of alternatives")
@click.option("--category", default=None, help="Category to sample when expanding")
@click.option("--max-price", default=None, type=float, help="Only consider medicines up to this price")
@click.option("--keep-same-name", is_flag=True, help="Allow alternatives with the target's exact name")
@click.option("--catalog", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Read from a JSONL catalog instead of Weaviate")
@click.option("--seed", default=None, type=int, help="Seed for random sampling")
@click.option("--json", "as_json", is_flag=True, help="Print the response as JSON")
def alternatives(
        medicine_id: str,
        min_score: float,
        max_results: int,
        category: str | None,
        max_price: float | None,
        keep_same_name: bool,
        catalog: str | None,
        seed: int | None,
        as_json: bool,
) -> None:
    """Find ranked alternatives for a medicine."""
    from drugalts.models import AlternativesRequest
    from drugalts.recommend import AlternativesPipeline

    try:
        request = AlternativesRequest(
            target_id=medicine_id,
            min_score=min_score,
            max_results=max_results,
            category=category,
            max_price=max_price,
            exclude_same_name=not keep_same_name,
        )
    except InvalidInputError as e:
        console.print(f"[red]Invalid request: {e}[/red]")
        sys.exit(EXIT_INVALID_INPUT)

    with open_store(catalog, seed=seed) as store:
        try:
            response = AlternativesPipeline(store).recommend(request)
        except MedicineNotFoundError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(EXIT_NOT_FOUND)
        except StoreUnavailableError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(EXIT_STORE_UNAVAILABLE)
        except RequestCancelledError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(EXIT_CANCELLED)

    if as_json:
        click.echo(json.dumps(response.to_dict(), indent=2))
        return

    target = response.target_medicine
    console.print(
        f"\n[bold]{target.name}[/bold] - {target.manufacturer} - "
        f"{target.category} - price {_format_price(target.price)}"
    )

    if not response.alternatives:
        console.print(f"[yellow]{response.message}[/yellow]")
        return

    table = Table(title=f"{response.count} alternatives")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Manufacturer")
    table.add_column("Score", justify="right")
    table.add_column("Ingredients", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("vs target", justify="right")
    table.add_column("Common ingredients")

    for i, alt in enumerate(response.alternatives, 1):
        comparison = alt.comparison
        if comparison.price_status is not None:
            delta = f"{comparison.price_difference_percent:+d}% ({comparison.price_status.value})"
        else:
            delta = "n/a"
        table.add_row(
            str(i),
            alt.medicine.name,
            alt.medicine.manufacturer,
            f"{alt.score * 100:.0f}%",
            f"{alt.similarity.ingredient_match * 100:.0f}%",
            _format_price(alt.medicine.price),
            delta,
            ", ".join(sorted(comparison.common_ingredients)),
        )

    console.print(table)

    warnings = [alt for alt in response.alternatives if alt.comparison.common_interaction_drugs]
    for alt in warnings:
        drugs = ", ".join(sorted(alt.comparison.common_interaction_drugs)[:3])
        console.print(f"[red]Possible interaction warning:[/red] {alt.medicine.name} shares alerts for {drugs}")


if __name__ == "__main__":
    main()
