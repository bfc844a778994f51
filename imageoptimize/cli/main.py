"""
Main CLI Application
Optimize a file, a URL, a base64 payload or every JPEG/PNG under a directory
"""

import asyncio
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from imageoptimize import __version__
from imageoptimize.config import Settings
from imageoptimize.core.constants import (
    CODEC_EXTENSIONS,
    DEFAULT_QUALITY_RANGES,
    SOURCE_EXTENSIONS,
)
from imageoptimize.core.conversion.formats import get_codec_adapter
from imageoptimize.core.exceptions import ImageOptimizeError
from imageoptimize.core.optimization import PerceptualScorer
from imageoptimize.models.optimization import (
    CodecTarget,
    OptimizationConfig,
    OptimizationResult,
    QualityRange,
)
from imageoptimize.services.optimization_service import OptimizationService
from imageoptimize.services.source_loader import is_url
from imageoptimize.utils.logging import setup_logging

rating_scorer = PerceptualScorer()

app = typer.Typer(
    name="imageoptimize",
    help="Find the smallest encoding of an image that still looks the same",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()
state: Dict[str, Settings] = {}

KB = 1024
MB = KB * 1024


@dataclass
class Job:
    """One source to optimize and where its output goes (None: report only)."""

    source: str
    destination: Optional[Path]
    source_path: Optional[Path] = None

    @property
    def label(self) -> str:
        if len(self.source) <= 80:
            return self.source
        return self.source[:77] + "..."


def get_settings() -> Settings:
    if "settings" not in state:
        state["settings"] = Settings()
    return state["settings"]


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[
        bool, typer.Option("--verbose", help="Enable debug logging")
    ] = False,
    version: Annotated[
        Optional[bool], typer.Option("--version", "-v", help="Show version")
    ] = None,
):
    """
    Image optimizer CLI

    [bold green]Examples:[/bold green]

      [cyan]imageoptimize optimize photo.jpg -o out/photo[/cyan]
      [cyan]imageoptimize optimize ./images --output ./optimized[/cyan]
      [cyan]imageoptimize optimize ./images --overwrite --codec jpeg --codec png[/cyan]
    """
    if version:
        console.print(f"imageoptimize {__version__}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()

    try:
        settings = Settings()
    except ValidationError as e:
        console.print(f"[red]Invalid settings: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(1)
    state["settings"] = settings

    setup_logging(
        log_level="DEBUG" if verbose else settings.log_level,
        json_logs=settings.json_logs,
        log_file=settings.log_file,
        max_log_size_mb=settings.max_log_size_mb,
        backup_count=settings.log_backup_count,
    )


def format_size(size: int) -> str:
    if size >= MB:
        return f"{size / MB:.1f}mb"
    if size >= KB:
        return f"{size / KB:.1f}kb"
    return f"{size}b"


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    return f"{seconds:.2f}s"


def parse_quality_overrides(values: Optional[List[str]], option: str) -> Dict[CodecTarget, int]:
    """Parse repeated ``codec=N`` options."""
    overrides: Dict[CodecTarget, int] = {}
    for value in values or []:
        codec_name, sep, number = value.partition("=")
        try:
            if not sep:
                raise ValueError
            overrides[CodecTarget(codec_name.strip().lower())] = int(number)
        except ValueError:
            raise typer.BadParameter(
                f"expected CODEC=N with CODEC one of "
                f"{', '.join(c.value for c in CodecTarget)}, got '{value}'",
                param_hint=option,
            )
    return overrides


def build_quality_ranges(
    minimums: Dict[CodecTarget, int], maximums: Dict[CodecTarget, int]
) -> Dict[CodecTarget, QualityRange]:
    ranges: Dict[CodecTarget, QualityRange] = {}
    for codec in set(minimums) | set(maximums):
        default_min, default_max = DEFAULT_QUALITY_RANGES[codec.value]
        ranges[codec] = QualityRange(
            min_quality=minimums.get(codec, default_min),
            max_quality=maximums.get(codec, default_max),
        )
    return ranges


def collect_jobs(
    source: str,
    output: Optional[Path],
    overwrite: bool,
    formats: List[str],
) -> List[Job]:
    """Expand the SOURCE argument into per-file jobs."""
    path = Path(source).expanduser()
    if not is_url(source) and path.is_dir():
        root = output or (path if overwrite else None)
        jobs = []
        for file in sorted(path.rglob("*")):
            if file.is_file() and file.suffix.lower().lstrip(".") in formats:
                relative = file.relative_to(path)
                destination = root / relative if root is not None else None
                jobs.append(Job(source=str(file), destination=destination, source_path=file))
        return jobs

    if not is_url(source) and path.is_file():
        destination = output or (path if overwrite else None)
        if destination is not None and destination.is_dir():
            destination = destination / path.name
        return [Job(source=str(path), destination=destination, source_path=path)]

    destination = output
    if destination is not None and destination.is_dir():
        name = Path(urlparse(source).path).name if is_url(source) else ""
        destination = destination / (name or "image")
    return [Job(source=source, destination=destination)]


def output_path(destination: Path, codec: CodecTarget) -> Path:
    """Destination with the codec's extension, keeping an equivalent existing one."""
    suffix = destination.suffix.lower().lstrip(".")
    if suffix and CODEC_EXTENSIONS.get(suffix, suffix) == CODEC_EXTENSIONS[codec.value]:
        return destination
    return destination.with_suffix("." + CODEC_EXTENSIONS[codec.value])


def write_output(job: Job, result: OptimizationResult) -> Tuple[Optional[Path], bool]:
    """Write the winner next to the job's destination with the codec's extension.

    Returns:
        Tuple of (written path, whether it was written)
    """
    if job.destination is None:
        return None, False

    target = output_path(job.destination, result.codec)
    if job.source_path is not None:
        same_file = target.resolve() == job.source_path.resolve()
        if same_file and not result.size_improved:
            # Never replace a source with something that is not smaller
            return target, False

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(result.data)
    return target, True


def print_result(
    job: Job,
    result: OptimizationResult,
    target: Optional[Path],
    written: bool,
    elapsed: float,
) -> None:
    percent = result.size * 100 // result.original_size if result.original_size else 100
    score_color = "green" if result.threshold_met else "yellow"
    rating = rating_scorer.visual_quality_rating(result.score)
    label = str(target) if target is not None else job.label
    note = ""
    if target is None:
        note = " [dim](not written)[/dim]"
    elif not written:
        note = " [dim](no improvement, source kept)[/dim]"
    console.print(
        f"{escape(label)}: [bold]{format_size(result.size)}[/bold] {percent}%"
        f"([{score_color}]{result.score:.2f} {rating}[/{score_color}]) "
        f"{result.codec.value} q={result.quality} {format_duration(elapsed)}{note}",
        highlight=False,
    )


async def run_jobs(
    jobs: List[Job], config: OptimizationConfig, as_json: bool
) -> int:
    failures = 0
    summaries = []
    async with OptimizationService(settings=get_settings()) as service:
        for job in jobs:
            start = time.perf_counter()
            try:
                result = await service.optimize_source(job.source, config)
                target, written = write_output(job, result)
            except (ImageOptimizeError, OSError) as e:
                failures += 1
                message = getattr(e, "message", None) or str(e)
                if as_json:
                    summaries.append({"source": job.label, "error": message})
                else:
                    console.print(
                        f"[red]{escape(job.label)}: {escape(message)}[/red]", highlight=False
                    )
                continue

            if as_json:
                summary = result.summary()
                summary.update(
                    source=job.label,
                    output=str(target) if target is not None else None,
                    written=written,
                    rating=rating_scorer.visual_quality_rating(result.score),
                )
                summaries.append(summary)
            else:
                print_result(job, result, target, written, time.perf_counter() - start)

    if as_json:
        typer.echo(json.dumps(summaries, indent=2))
    return failures


@app.command()
def optimize(
    source: Annotated[
        str, typer.Argument(help="Image file, directory, http(s) URL or base64 payload")
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("-o", "--output", help="Output path (directory when SOURCE is one)"),
    ] = None,
    overwrite: Annotated[
        bool, typer.Option("--overwrite", help="Write results over the sources")
    ] = False,
    codecs: Annotated[
        Optional[List[CodecTarget]],
        typer.Option("-c", "--codec", help="Codec to try (repeatable, order is priority)"),
    ] = None,
    formats: Annotated[
        Optional[List[str]],
        typer.Option("-f", "--format", help="Source extensions to pick up in directories"),
    ] = None,
    threshold: Annotated[
        Optional[float],
        typer.Option("-t", "--threshold", min=0.0, help="Maximum dissimilarity score"),
    ] = None,
    min_quality: Annotated[
        Optional[List[str]],
        typer.Option("--min-quality", help="Lower search bound as CODEC=N (repeatable)"),
    ] = None,
    max_quality: Annotated[
        Optional[List[str]],
        typer.Option("--max-quality", help="Upper search bound as CODEC=N (repeatable)"),
    ] = None,
    iterations: Annotated[
        Optional[int],
        typer.Option("--iterations", min=1, help="Maximum evaluations per codec"),
    ] = None,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", min=0.0, help="Per-codec timeout in seconds"),
    ] = None,
    quality_first: Annotated[
        bool,
        typer.Option("--quality-first", help="Break size ties by score before codec order"),
    ] = False,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print result summaries as JSON")
    ] = False,
):
    """
    Optimize images, keeping the smallest encoding within the quality threshold
    """
    settings = get_settings()
    extensions = [item.lower().lstrip(".") for item in (formats or SOURCE_EXTENSIONS)]
    quality_ranges = build_quality_ranges(
        parse_quality_overrides(min_quality, "--min-quality"),
        parse_quality_overrides(max_quality, "--max-quality"),
    ) if (min_quality or max_quality) else None

    try:
        config = settings.to_optimization_config(
            allowed_codecs=tuple(codecs) if codecs else None,
            quality_threshold=threshold,
            quality_ranges=quality_ranges,
            max_search_iterations=iterations,
            codec_timeout=timeout,
            prefer_smallest=False if quality_first else None,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid options: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(1)

    jobs = collect_jobs(source, output, overwrite, extensions)
    if not jobs:
        console.print(f"[yellow]No {', '.join(extensions)} images found in {source}[/yellow]")
        raise typer.Exit(0)

    failures = asyncio.run(run_jobs(jobs, config, as_json))
    if failures:
        raise typer.Exit(1)


@app.command(name="codecs")
def list_codecs():
    """
    List target codecs, their quality domains and availability
    """
    config = OptimizationConfig()
    table = Table(title="Target codecs")
    table.add_column("Codec", style="cyan")
    table.add_column("Quality domain")
    table.add_column("Default range")
    table.add_column("Lossless")
    table.add_column("Available")

    for codec in CodecTarget:
        domain = codec.domain
        default_min, default_max = DEFAULT_QUALITY_RANGES[codec.value]
        available = get_codec_adapter(codec, config).is_available()
        table.add_row(
            codec.value,
            f"{domain.minimum:g}-{domain.maximum:g}",
            f"{default_min}-{default_max}",
            "yes" if codec.supports_lossless else "no",
            "[green]yes[/green]" if available else "[red]no[/red]",
        )

    console.print(table)


if __name__ == "__main__":
    app()
