"""
Listab CLI Main Entry Point

Command-line interface for managing listing experiments and running the
rotation worker.
"""

import asyncio
import json
import uuid
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from listab.config import get_settings
from listab.errors import ListabError
from listab.integrations.image_scorer import get_image_scorer
from listab.log_config import configure_logging
from listab.schemas.experiment import ExperimentCreate, HypothesisRequest, MetricsUpdate
from listab.services.experiment_service import ExperimentService
from listab.services.hypotheses import generate_hypotheses, hypotheses_as_variants
from listab.services.image_allocator import CategorySlotLimits, ImageSetAllocator

app = typer.Typer(
    name="listab",
    help="Listab listing A/B testing CLI",
    add_completion=False,
)
console = Console()

T = TypeVar("T")


@app.callback()
def main_callback():
    """Listing A/B experiments: variants, rotation and winner selection."""
    configure_logging(get_settings().log_level)


def _run_with_service(action: Callable[[ExperimentService], Awaitable[T]]) -> T:
    """Run an action against the database with a configured service."""
    from listab.integrations.publisher import get_publisher
    from listab.services.database import close_db, get_db_session

    async def runner() -> T:
        try:
            async with get_db_session() as session:
                service = ExperimentService(session, publisher=get_publisher())
                return await action(service)
        finally:
            await close_db()

    try:
        return asyncio.run(runner())
    except ListabError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def _parse_id(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        console.print(f"[red]Invalid experiment id: {value}[/red]")
        raise typer.Exit(1)


@app.command("init-db")
def init_db_command():
    """Create database tables (use Alembic migrations in production)."""
    from listab.services.database import close_db, init_db

    async def runner():
        try:
            await init_db()
        finally:
            await close_db()

    asyncio.run(runner())
    console.print("[green]✓ Database initialized[/green]")


@app.command()
def create(
    file: Path = typer.Argument(..., help="JSON file describing the experiment"),
    owner: str = typer.Option(..., "--owner", envvar="LISTAB_OWNER_ID", help="Owner id"),
    with_hypotheses: bool = typer.Option(
        False, "--with-hypotheses", help="Generate variants when the file has none"
    ),
):
    """Create an experiment in draft."""
    if not file.exists():
        console.print(f"[red]File not found: {file}[/red]")
        raise typer.Exit(1)

    try:
        data = ExperimentCreate.model_validate_json(file.read_text())
    except ValueError as e:
        console.print(f"[red]Invalid experiment file: {e}[/red]")
        raise typer.Exit(1)

    if with_hypotheses and not data.variants:
        data.variants = hypotheses_as_variants(HypothesisRequest(
            base_title=data.base_content.title,
            base_description=data.base_content.description,
            base_price=data.base_content.price,
        ))

    owner_id = _parse_id(owner)
    experiment = _run_with_service(lambda s: s.create_experiment(data, owner_id))
    console.print(f"[green]✓ Created experiment {experiment.id}[/green] ({len(experiment.variants)} variants)")


@app.command("list")
def list_experiments(
    owner: Optional[str] = typer.Option(None, "--owner", help="Filter by owner id"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by status"),
):
    """List experiments."""
    owner_id = _parse_id(owner) if owner else None
    experiments = _run_with_service(lambda s: s.list_experiments(owner_id=owner_id, status=status))

    table = Table(title="Experiments")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Category", style="magenta")
    table.add_column("Status", style="green")
    table.add_column("Variants")
    table.add_column("Live")

    for experiment in experiments:
        live = experiment.current_variant_index
        table.add_row(
            str(experiment.id),
            experiment.name,
            experiment.category,
            experiment.status,
            str(len(experiment.variants)),
            str(live) if live is not None else "-",
        )

    console.print(table)
    console.print(f"\nTotal: {len(experiments)} experiments")


@app.command()
def show(experiment_id: str = typer.Argument(..., help="Experiment id")):
    """Show an experiment with its variants."""
    exp_id = _parse_id(experiment_id)
    experiment = _run_with_service(lambda s: s.get_experiment(exp_id))
    _print_json(experiment.to_dict())


@app.command()
def start(experiment_id: str = typer.Argument(..., help="Experiment id")):
    """Start testing; variant 0 goes live."""
    exp_id = _parse_id(experiment_id)
    experiment = _run_with_service(lambda s: s.start_experiment(exp_id))
    console.print(f"[green]✓ Started {experiment.name}[/green] (live variant 0)")


@app.command()
def stop(experiment_id: str = typer.Argument(..., help="Experiment id")):
    """Complete an experiment."""
    exp_id = _parse_id(experiment_id)
    experiment = _run_with_service(lambda s: s.stop_experiment(exp_id))
    console.print(f"[green]✓ Stopped {experiment.name}[/green]")


@app.command()
def rotate(experiment_id: str = typer.Argument(..., help="Experiment id")):
    """Make the next variant live."""
    exp_id = _parse_id(experiment_id)
    experiment = _run_with_service(lambda s: s.rotate_next(exp_id))
    console.print(f"[green]✓ Live variant is now {experiment.current_variant_index}[/green]")


@app.command()
def delete(
    experiment_id: str = typer.Argument(..., help="Experiment id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete an experiment and its variants."""
    exp_id = _parse_id(experiment_id)
    if not yes and not typer.confirm(f"Delete experiment {exp_id}?"):
        raise typer.Abort()
    _run_with_service(lambda s: s.delete_experiment(exp_id))
    console.print(f"[green]✓ Deleted {exp_id}[/green]")


@app.command()
def metrics(
    experiment_id: str = typer.Argument(..., help="Experiment id"),
    variant: int = typer.Option(..., "--variant", "-v", help="Variant index"),
    views: Optional[int] = typer.Option(None, "--views"),
    contacts: Optional[int] = typer.Option(None, "--contacts"),
    favorites: Optional[int] = typer.Option(None, "--favorites"),
    increment: bool = typer.Option(False, "--increment", help="Add to counters instead of setting"),
    auto_winner: bool = typer.Option(False, "--auto-winner", help="Try to declare a winner afterwards"),
):
    """Record variant metrics."""
    exp_id = _parse_id(experiment_id)
    data = MetricsUpdate(
        variant_index=variant,
        views=views,
        contacts=contacts,
        favorites=favorites,
        mode="increment" if increment else "set",
    )
    result = _run_with_service(
        lambda s: s.update_variant_metrics(exp_id, data, auto_determine_winner=auto_winner)
    )
    _print_json(result)


@app.command()
def winner(
    experiment_id: str = typer.Argument(..., help="Experiment id"),
    preview: bool = typer.Option(False, "--preview", help="Do not record the winner"),
    force: bool = typer.Option(False, "--force", help="Pick a winner even with sparse data"),
):
    """Detect the winning variant."""
    exp_id = _parse_id(experiment_id)
    selection = _run_with_service(
        lambda s: s.determine_winner(exp_id, allow_low_sample=force, persist=not preview)
    )
    label = "Leading" if preview else "Winner"
    console.print(
        f"[bold green]{label}: variant {selection.winner.index}[/bold green] "
        f"(ctr {selection.ctr * 100:.2f}%, score {selection.score:.4f}, "
        f"{selection.total_views} views)"
    )


@app.command()
def stats(experiment_id: str = typer.Argument(..., help="Experiment id")):
    """Show per-variant performance."""
    exp_id = _parse_id(experiment_id)
    data = _run_with_service(lambda s: s.get_experiment_stats(exp_id))

    table = Table(title=f"Experiment {exp_id} ({data['status']})")
    table.add_column("Index", style="cyan")
    table.add_column("Name")
    table.add_column("Views")
    table.add_column("Contacts")
    table.add_column("Favorites")
    table.add_column("CTR")
    table.add_column("Score")
    table.add_column("")

    for v in data["variants"]:
        marks = []
        if v["is_live"]:
            marks.append("live")
        if v["is_winner"]:
            marks.append("winner")
        table.add_row(
            str(v["index"]),
            v["name"],
            str(v["views"]),
            str(v["contacts"]),
            str(v["favorites"]),
            f"{v['ctr']:.2f}%",
            f"{v['score']:.4f}",
            ", ".join(marks),
        )

    console.print(table)
    summary = data["summary"]
    console.print(
        f"\nTotal views: {summary['total_views']}, contacts: {summary['total_contacts']}, "
        f"running {summary['hours_running']:.1f}h"
    )


@app.command()
def publish(
    experiment_id: str = typer.Argument(..., help="Experiment id"),
    variant: int = typer.Argument(..., help="Variant index"),
):
    """Publish a variant to the marketplace now."""
    exp_id = _parse_id(experiment_id)
    result = _run_with_service(lambda s: s.publish_variant(exp_id, variant))
    console.print(f"[green]✓ Published variant {variant}[/green] (listing {result.listing_ref or '-'})")


@app.command("allocate-images")
def allocate_images(
    images: List[str] = typer.Argument(..., help="Candidate image URLs"),
    category: str = typer.Option("general", "--category", "-c", help="Listing category"),
    max_slots: Optional[int] = typer.Option(None, "--max-slots", help="Images per set"),
    experiment: Optional[str] = typer.Option(None, "--experiment", "-e", help="Experiment to optimize"),
    apply: bool = typer.Option(False, "--apply", help="Write the sets onto the variants"),
):
    """Build ranked image sets from a photo pool."""
    if experiment:
        exp_id = _parse_id(experiment)
        result = _run_with_service(
            lambda s: s.optimize_images(exp_id, images=images, apply=apply, max_slots=max_slots)
        )
        _print_json(result)
        return

    settings = get_settings()
    allocator = ImageSetAllocator(
        scorer=get_image_scorer(settings),
        slot_limits=CategorySlotLimits.from_settings(settings),
    )
    try:
        sets = asyncio.run(allocator.allocate(images, category, max_slots))
    except ListabError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    _print_json({"image_sets": [s.to_dict() for s in sets]})


@app.command("import-images")
def import_images(
    experiment_id: str = typer.Argument(..., help="Experiment id"),
    public_url: str = typer.Argument(..., help="Public folder link"),
    max_slots: Optional[int] = typer.Option(None, "--max-slots", help="Images per set"),
):
    """Pull photos from a public folder onto the experiment's variants."""
    from listab.integrations.image_source import PublicFolderClient

    exp_id = _parse_id(experiment_id)
    result = _run_with_service(
        lambda s: s.import_images_from_folder(exp_id, public_url, PublicFolderClient(), max_slots=max_slots)
    )
    console.print(
        f"[green]✓ Imported {result['total_found']} images[/green] "
        f"({result['slots_used']} slots, {len(result['image_sets'])} sets)"
    )


@app.command("image-limits")
def image_limits(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Show one category"),
):
    """Show image slot limits per category."""
    limits = CategorySlotLimits.from_settings(get_settings())
    if category:
        console.print(f"{category}: {limits(category)} images")
        return
    _print_json(limits.to_dict())


@app.command()
def hypotheses(
    title: str = typer.Argument(..., help="Base listing title"),
    description: str = typer.Option("", "--description", "-d"),
    price: float = typer.Option(0.0, "--price", "-p"),
):
    """Suggest variant hypotheses for a listing."""
    request = HypothesisRequest(base_title=title, base_description=description, base_price=Decimal(str(price)))
    _print_json(generate_hypotheses(request))


@app.command()
def tick(
    at: Optional[datetime] = typer.Option(None, "--at", help="Run as if it were this time (UTC)"),
):
    """Run the rotation pass and the expiry sweep once."""
    from listab.integrations.publisher import get_publisher
    from listab.services.database import async_session_maker, close_db
    from listab.services.rotation_scheduler import RotationScheduler

    async def runner():
        try:
            scheduler = RotationScheduler(async_session_maker, publisher=get_publisher())
            return await scheduler.tick(at or datetime.utcnow())
        finally:
            await close_db()

    for report in asyncio.run(runner()):
        console.print(
            f"[bold]{report.name}[/bold]: processed {report.processed}, "
            f"acted {len(report.acted)}, skipped {report.skipped}, failed {len(report.failed)}"
        )


@app.command()
def worker():
    """Run the rotation scheduler until interrupted."""
    from listab.integrations.publisher import get_publisher
    from listab.services.database import async_session_maker, close_db
    from listab.services.rotation_scheduler import RotationScheduler

    async def runner():
        try:
            scheduler = RotationScheduler(async_session_maker, publisher=get_publisher())
            await scheduler.run_forever()
        finally:
            await close_db()

    console.print("[bold blue]Rotation worker running (Ctrl+C to stop)[/bold blue]")
    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        console.print("Worker stopped")


def main():
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
