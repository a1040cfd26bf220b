"""
Command-line interface for the filtered ANN benchmark driver.
"""

import json
import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler

from vdbbench import __version__

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose)],
    )


def _load(config_path):
    from vdbbench.core.config import load_config

    return load_config(config_path) if config_path else load_config()


def _open_database(cfg, provider: str, dimensions: int):
    from vdbbench.databases import get_database

    db_config = cfg.get_database_config(provider)
    db_config.setdefault("vector_size", dimensions)
    db_config.setdefault("m", cfg.ingestion.m)
    db_config.setdefault("ef_construction", cfg.ingestion.ef_construction)
    return get_database(provider, db_config)


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose):
    """vdbbench - Filtered ANN benchmarks for Qdrant, Elasticsearch and Vespa."""
    _setup_logging(verbose)


@main.command()
@click.option("--vectors", type=click.Path(exists=True, dir_okay=False), required=True,
              help="ANN-Benchmarks HDF5 file")
@click.option("--settings", "-s", type=click.Path(exists=True, dir_okay=False),
              help="Generation settings (default: config/generation.yaml)")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Artifact path")
@click.option("--force", is_flag=True, help="Overwrite an existing artifact")
def generate(vectors, settings, output, force):
    """Generate synthetic payloads and query filters for a vector file."""
    from vdbbench.core.config import load_generation_settings
    from vdbbench.core.exceptions import GenerationError
    from vdbbench.datasets import AnnBenchmarkDataset, generate_augmented_dataset

    try:
        gen_settings = load_generation_settings(settings)
        dataset = AnnBenchmarkDataset(vectors)
        path = generate_augmented_dataset(
            dataset, gen_settings, output_path=output, force=force, show_progress=True
        )
    except GenerationError as e:
        _fail(str(e))

    console.print(f"[green]Augmented dataset written to {path}[/green]")


@main.command()
@click.option("--provider", "-p", required=True, help="Database to ingest into")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to config file")
@click.option("--vectors", type=click.Path(exists=True, dir_okay=False),
              help="HDF5 file (default: dataset.vectors_file)")
def ingest(provider, config, vectors):
    """Ingest reference vectors and payloads into a database."""
    from vdbbench.benchmark import BenchmarkRunner
    from vdbbench.core.exceptions import BackendError, DataIntegrityError
    from vdbbench.datasets import AnnBenchmarkDataset, augmented_path_for, load_augmented_dataset

    cfg = _load(config)
    vectors = vectors or cfg.dataset.vectors_file
    dataset = AnnBenchmarkDataset(vectors)
    augmented_file = augmented_path_for(vectors)
    augmented = load_augmented_dataset(augmented_file)

    db = _open_database(cfg, provider, dataset.dimensions)
    try:
        BenchmarkRunner(cfg).ingest(db, dataset, augmented, augmented_file)
    except (BackendError, DataIntegrityError) as e:
        _fail(str(e))
    finally:
        db.close()

    console.print(f"[green]Ingestion into {provider} complete[/green]")


@main.command()
@click.option("--provider", "-p", required=True, help="Database to benchmark")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to config file")
@click.option("--vectors", type=click.Path(exists=True, dir_okay=False),
              help="HDF5 file (default: dataset.vectors_file)")
@click.option("--filters/--no-filters", default=None, help="Attach generated filters to queries")
def bench(provider, config, vectors, filters):
    """Run the query throughput plan against an ingested database."""
    from vdbbench.benchmark import BenchmarkRunner
    from vdbbench.datasets import AnnBenchmarkDataset, augmented_path_for, load_augmented_dataset

    cfg = _load(config)
    vectors = vectors or cfg.dataset.vectors_file
    dataset = AnnBenchmarkDataset(vectors)
    augmented_file = augmented_path_for(vectors)
    augmented = load_augmented_dataset(augmented_file)

    runner = BenchmarkRunner(cfg)
    db = _open_database(cfg, provider, dataset.dimensions)
    try:
        if provider == "bruteforce":
            # In-process backend, nothing survives between invocations
            runner.ingest(db, dataset, augmented, augmented_file)
        runner.run(db, dataset.queries, augmented.queries, use_filters=filters)
    finally:
        db.close()


@main.command()
@click.argument("place", type=click.Path(exists=True), default="./reports/additional_data")
@click.option("--vectors", type=click.Path(exists=True, dir_okay=False),
              default="./data/gist-960-euclidean.hdf5", show_default=True,
              help="HDF5 file the logs were produced with")
@click.option("--force", is_flag=True, help="Recompute existing recall.json files")
def recall(place, vectors, force):
    """Compute recall and precision of collected result logs."""
    from vdbbench.datasets import AnnBenchmarkDataset
    from vdbbench.reporting import evaluate_reports

    results = evaluate_reports(place, AnnBenchmarkDataset(vectors), force=force)
    if not results:
        console.print(f"[yellow]No result logs found below {place}[/yellow]")
    for path, result in results.items():
        overall = result["overall"]
        console.print(
            f"{path}: recall {overall['recall']['mean']:.4f} "
            f"precision {overall['precision']['mean']:.4f} "
            f"(n={overall['recall']['count']}, excluded={result['skipped']['excluded']})"
        )


@main.group("id")
def id_group():
    """Render and parse benchmark identifiers."""
    pass


@id_group.command("render")
@click.option("--provider", required=True)
@click.option("--group", "bench_group", default="query_throughput", show_default=True)
@click.option("--m", type=int, default=16, show_default=True)
@click.option("--ef-construction", type=int, default=100, show_default=True)
@click.option("--cpu", type=float, default=4.0, show_default=True)
@click.option("--mem", type=float, default=8.0, show_default=True)
@click.option("--k", type=int, required=True)
@click.option("--ef", type=int, required=True)
@click.option("--fetch-payload/--no-fetch-payload", default=False)
@click.option("--filters/--no-filters", default=False)
@click.option("--tasks", type=int, default=5, show_default=True)
@click.option("--queries-per-task", type=int, default=10, show_default=True)
def id_render(provider, bench_group, m, ef_construction, cpu, mem, k, ef,
              fetch_payload, filters, tasks, queries_per_task):
    """Print the identifier of a benchmark configuration."""
    from vdbbench.core.exceptions import BenchmarkIdError
    from vdbbench.core.identifier import BenchmarkId

    try:
        ident = BenchmarkId(
            provider=provider, bench_group=bench_group, m=m, ef_construction=ef_construction,
            cpu_limit=cpu, mem_limit=mem, k=k, ef=ef, fetch_payload=fetch_payload,
            use_filters=filters, num_tasks=tasks, queries_per_task=queries_per_task,
        ).render()
    except BenchmarkIdError as e:
        _fail(str(e))
    click.echo(ident)


@id_group.command("parse")
@click.argument("ident")
def id_parse(ident):
    """Decode an identifier into its parameters (JSON)."""
    from dataclasses import asdict

    from vdbbench.core.exceptions import BenchmarkIdError
    from vdbbench.core.identifier import parse

    try:
        parsed = parse(ident)
    except BenchmarkIdError as e:
        _fail(str(e))
    click.echo(json.dumps(asdict(parsed), indent=2))


@main.command()
def list_databases():
    """List available database adapters."""
    from vdbbench.databases import list_available_databases

    console.print("[bold]Available Databases:[/bold]")
    for db in list_available_databases():
        console.print(f"  - {db}")


@main.command()
@click.option("--dataset", "-d", default="gist-960-euclidean", show_default=True,
              help="Dataset to download")
@click.option("--output", "-o", default="./data", help="Output directory")
@click.option("--force", is_flag=True, help="Download even if the file exists")
def download(dataset, output, force):
    """Download an ANN-Benchmarks dataset."""
    from vdbbench.datasets import KNOWN_DATASETS, download_dataset

    if dataset not in KNOWN_DATASETS:
        _fail(f"unknown dataset {dataset!r} (known: {', '.join(sorted(KNOWN_DATASETS))})")

    console.print(f"[blue]Downloading dataset: {dataset}[/blue]")
    path = download_dataset(dataset, data_dir=output, force=force)
    console.print(f"[green]Download complete: {path}[/green]")


if __name__ == "__main__":
    main()
