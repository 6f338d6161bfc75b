"""CLI entry point for moge."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.tree import Tree

from .cache import (
    clear_cache,
    create_outline_cache,
    get_cache_key,
    get_cache_stats,
    list_cached,
    load_outline,
)
from .config import DEFAULT_PROVIDER, PROVIDERS, STREAM_TIMEOUT, get_provider_config
from .costs import estimate_generation_cost, format_cost_warning
from .generate import GenerationError, OutlineRequest, check_request, generate_outline
from .outline import (
    OutlineTooLargeError,
    ParsedOutline,
    outline_to_markdown,
    outline_to_text,
    parse_outline_markdown,
    validate_outline,
)
from .sensitive import SensitiveFilter, load_words

# Main app
app = typer.Typer(
    name="moge",
    help="Generate, parse and export novel outlines.",
    no_args_is_help=True,
)

# Cache subcommand group
cache_app = typer.Typer(help="Manage cache.")
app.add_typer(cache_app, name="cache")

console = Console()

# Refuse to parse outlines larger than this
MAX_OUTLINE_CHARS = 2_000_000


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose output"),
    ] = False,
) -> None:
    """Generate, parse and export novel outlines."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _read_outline(path: Path) -> ParsedOutline:
    """Read and parse a Markdown outline file, exiting on failure."""
    if not path.exists():
        console.print(f"[red]File not found:[/red] {path}")
        raise typer.Exit(1)

    try:
        return parse_outline_markdown(
            path.read_text(encoding="utf-8"), max_chars=MAX_OUTLINE_CHARS
        )
    except OutlineTooLargeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _outline_tree(outline: ParsedOutline, label: str) -> Tree:
    """Build a rich tree view of an outline."""
    tree = Tree(f"[bold]{escape(label)}[/bold]")

    def add_chapters(parent: Tree, chapters) -> None:
        for chapter in chapters:
            node = parent.add(escape(chapter.title))
            for scene in chapter.scenes:
                node.add(f"[dim]{escape(scene)}[/dim]")

    add_chapters(tree, outline.direct_chapters)
    for volume in outline.volumes:
        node = tree.add(f"[bold cyan]{escape(volume.title)}[/bold cyan]")
        if volume.description:
            node.add(f"[italic]{escape(volume.description)}[/italic]")
        add_chapters(node, volume.chapters)
    return tree


@app.command()
def parse(
    source: Annotated[Path, typer.Argument(help="Markdown outline file")],
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the structure as JSON"),
    ] = False,
    out: Annotated[
        Path | None,
        typer.Option("--out", "-o", help="Write the JSON structure to this file"),
    ] = None,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Exit with an error if the structure is incomplete"),
    ] = False,
) -> None:
    """Parse a Markdown outline into volumes, chapters and scenes."""
    outline = _read_outline(source)
    structure_json = outline.model_dump_json(by_alias=True, indent=2)

    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(structure_json, encoding="utf-8")

    if as_json:
        typer.echo(structure_json)
    else:
        console.print(_outline_tree(outline, source.stem))
        console.print(
            f"[dim]{len(outline.volumes)} volumes, {outline.chapter_count()} chapters[/dim]"
        )

    if not validate_outline(outline):
        console.print("[yellow]Outline structure is incomplete[/yellow]")
        if strict:
            raise typer.Exit(1)


@app.command()
def generate(
    name: Annotated[str, typer.Argument(help="Novel name")],
    novel_type: Annotated[
        str,
        typer.Option("--type", help="Genre, e.g. 玄幻"),
    ] = "玄幻",
    era: Annotated[
        str,
        typer.Option("--era", help="Era or setting"),
    ] = "架空",
    tags: Annotated[
        list[str] | None,
        typer.Option("--tag", help="Tag (repeatable)"),
    ] = None,
    conflict: Annotated[
        str,
        typer.Option("--conflict", help="Core conflict"),
    ] = "",
    remark: Annotated[
        str,
        typer.Option("--remark", help="Extra notes for the model"),
    ] = "",
    volumes: Annotated[
        int,
        typer.Option("--volumes", min=1, help="Number of volumes"),
    ] = 3,
    chapters: Annotated[
        int,
        typer.Option("--chapters", min=1, help="Chapters per volume"),
    ] = 10,
    scenes: Annotated[
        int,
        typer.Option("--scenes", min=1, help="Scenes per chapter"),
    ] = 3,
    provider: Annotated[
        str,
        typer.Option("--provider", "-p", help=f"AI provider: {', '.join(PROVIDERS)}"),
    ] = DEFAULT_PROVIDER,
    out: Annotated[
        Path | None,
        typer.Option("--out", "-o", help="Output directory"),
    ] = None,
    timeout: Annotated[
        float,
        typer.Option("--timeout", help="Seconds before the stream is abandoned"),
    ] = STREAM_TIMEOUT,
    force: Annotated[
        bool,
        typer.Option("--force", help="Ignore cache and regenerate"),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip cost confirmation prompts"),
    ] = False,
) -> None:
    """Generate an outline with an AI model and parse its structure."""
    request = OutlineRequest(
        name=name,
        type=novel_type,
        era=era,
        tags=tags or [],
        remark=remark,
        conflict=conflict,
        volumes=volumes,
        chapters_per_volume=chapters,
        scenes_per_chapter=scenes,
    )

    try:
        check_request(request)
        config = get_provider_config(provider)
    except (GenerationError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    out = out or Path("./moge-out") / name
    cache_key = get_cache_key(request, config.name, config.model)
    cached = None if force else load_outline(cache_key)

    if cached is not None:
        console.print("[dim]Using cached outline[/dim]")
        markdown = cached.markdown
        outline = ParsedOutline.model_validate(cached.structure)
    else:
        estimate = estimate_generation_cost(request, config.model)
        if estimate["should_warn"] and not yes:
            console.print(
                format_cost_warning(
                    "Outline generation",
                    estimate["estimated_cost"],
                    f"~{estimate['estimated_output_tokens']:,} output tokens",
                )
            )
            if not typer.confirm("Continue?"):
                raise typer.Exit(0)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Generating outline...", total=None)
            received = 0

            def on_chunk(chunk: str) -> None:
                nonlocal received
                received += len(chunk)
                progress.update(task, description=f"Generating outline... {received:,} chars")

            try:
                generated = generate_outline(request, config.name, timeout, on_chunk=on_chunk)
            except GenerationError as e:
                console.print(f"[red]Generation failed:[/red] {e}")
                raise typer.Exit(1) from e

        create_outline_cache(request, generated)
        markdown = generated.markdown
        outline = generated.structure
        console.print("[green]✓[/green] Outline generated")

    out.mkdir(parents=True, exist_ok=True)
    (out / "outline.md").write_text(markdown, encoding="utf-8")
    (out / "structure.json").write_text(
        outline.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
    )

    console.print(_outline_tree(outline, name))
    if not validate_outline(outline):
        console.print("[yellow]Generated outline structure is incomplete[/yellow]")

    console.print(Panel(f"[bold green]Done![/bold green]\n\nOutput: {out}"))


@app.command()
def export(
    source: Annotated[Path, typer.Argument(help="Markdown outline file")],
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: md or txt"),
    ] = "txt",
    title: Annotated[
        str | None,
        typer.Option("--title", "-t", help="Title for the exported outline"),
    ] = None,
    stats: Annotated[
        bool,
        typer.Option("--stats", help="Include outline statistics (txt only)"),
    ] = False,
    out: Annotated[
        Path | None,
        typer.Option("--out", "-o", help="Output file (default: stdout)"),
    ] = None,
) -> None:
    """Export a Markdown outline as normalized Markdown or plain text."""
    if format not in ("md", "txt"):
        console.print(f"[red]Unsupported format:[/red] {format} (use md or txt)")
        raise typer.Exit(1)

    outline = _read_outline(source)
    if outline.is_empty():
        console.print("[yellow]No volumes or chapters found[/yellow]")
        raise typer.Exit(1)

    if format == "md":
        content = outline_to_markdown(outline, title)
    else:
        content = outline_to_text(outline, title, include_stats=stats)

    if out is None:
        typer.echo(content, nl=False)
        return

    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(content, encoding="utf-8")
    console.print(f"[green]✓[/green] Exported to {out}")


@app.command()
def check(
    source: Annotated[str, typer.Argument(help="Text to check, or a file path")],
    words: Annotated[
        Path | None,
        typer.Option("--words", "-w", help="Extra word list file, one word per line"),
    ] = None,
) -> None:
    """Check text for sensitive words."""
    path = Path(source)
    text = path.read_text(encoding="utf-8") if path.is_file() else source

    sensitive_filter = SensitiveFilter()
    if words is not None:
        try:
            sensitive_filter.add_words(load_words(words))
        except FileNotFoundError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from e

    result = sensitive_filter.replace(text)
    if result.passed:
        console.print("[green]✓[/green] No sensitive words found")
        return

    console.print(f"[red]Sensitive words found:[/red] {escape(', '.join(result.words))}")
    console.print(escape(result.text))
    raise typer.Exit(1)


# Cache subcommands
@cache_app.command("list")
def cache_list() -> None:
    """List cached entries."""
    entries = list_cached()
    if not entries:
        console.print("[dim]Cache is empty[/dim]")
        return

    for entry in entries:
        console.print(
            f"[bold]{escape(entry['name'][:50])}[/bold] "
            f"[dim]({entry['cache_key']}, {entry['provider']}/{entry['model']}, "
            f"{entry['volume_count']} volumes)[/dim]"
        )


@cache_app.command("stats")
def cache_stats() -> None:
    """Show cache statistics."""
    stats = get_cache_stats()
    console.print(f"Cache directory: {stats['cache_dir']}")
    console.print(f"Outlines: {stats['outline_count']}")
    console.print(f"Total size: {stats['total_size_kb']:.1f} KB")


@cache_app.command("clear")
def cache_clear(
    key: Annotated[
        str | None,
        typer.Option("--key", "-k", help="Specific cache key to clear"),
    ] = None,
    all_entries: Annotated[
        bool,
        typer.Option("--all", "-a", help="Clear all cache entries"),
    ] = False,
) -> None:
    """Clear cache entries."""
    if not key and not all_entries:
        console.print("[yellow]Specify --key or --all to clear cache[/yellow]")
        raise typer.Exit(1)

    count = clear_cache(key)
    console.print(f"[green]Cleared {count} cache files[/green]")


if __name__ == "__main__":
    app()
