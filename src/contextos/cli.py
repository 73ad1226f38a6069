"""Command-line interface for ContextOS."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from contextos import __version__
from contextos.config import (
    ProjectInfo,
    find_project_root,
    get_contextos_dir,
    load_config,
    save_config,
    set_config_value,
)
from contextos.context.builder import ContextBuilder
from contextos.exceptions import ContextOSError
from contextos.parser.core import detect_project_language
from contextos.ui.console import Console

console = Console()

EMBEDDING_PROVIDERS = ["auto", "sentence-transformers", "hash", "none"]


def _get_project_root(path: str | None = None) -> Path:
    """Find the project root or error."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        if not get_contextos_dir(root).is_dir():
            console.error(f"No ContextOS project at {root}. Run 'contextos init' first.")
            sys.exit(1)
        return root

    root = find_project_root()
    if root is None:
        console.error(
            "No ContextOS project found. Run 'contextos init' first, "
            "or specify a path with --path."
        )
        sys.exit(1)
    return root


def _open_builder(root: Path) -> ContextBuilder:
    builder = ContextBuilder(root)
    try:
        builder.initialize()
    except ContextOSError as e:
        console.error(str(e))
        sys.exit(1)
    return builder


def _run_index(builder: ContextBuilder, force: bool) -> None:
    with console.indexing_progress() as progress:
        task = progress.add_task("Indexing...", total=None)

        def on_progress(file_path: str, current: int, total: int):
            progress.update(
                task, total=total, completed=current, description=f"Indexing {file_path}"
            )

        result = builder.index(force=force, progress_callback=on_progress)

    if result.files_indexed == 0 and result.files_removed == 0 and not force:
        console.success("Already up to date (no files changed)")
    else:
        console.success(f"Indexed {result.files_indexed} file(s)")
    console.show_index_result(result)


@click.group()
@click.version_option(version=__version__, prog_name="contextos")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """ContextOS - ranked, token-budgeted codebase context for language models."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option(
    "--embedding", "-e",
    type=click.Choice(EMBEDDING_PROVIDERS),
    default=None,
    help="Embedding provider (default: auto).",
)
@click.option("--no-index", is_flag=True, help="Only write the configuration.")
def init(path: str | None, embedding: str | None, no_index: bool):
    """Initialize ContextOS for a repository and index it."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing ContextOS for: {root}")

    try:
        config = load_config(root)
    except ContextOSError as e:
        console.error(str(e))
        sys.exit(1)
    if not config.project.language:
        config.project = ProjectInfo(
            name=config.project.name or root.name,
            description=config.project.description,
            language=detect_project_language(root),
        )
    config.root_path = str(root)
    if embedding:
        config.embedding.provider = embedding

    save_config(root, config)
    console.success("Configuration saved to .contextos/config.json")

    if no_index:
        return
    builder = _open_builder(root)
    try:
        _run_index(builder, force=True)
    finally:
        builder.close()


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--full", is_flag=True, help="Re-index every file, not only changed ones.")
def index(path: str | None, full: bool):
    """Update the index (incremental by default)."""
    root = _get_project_root(path)
    builder = _open_builder(root)
    try:
        _run_index(builder, force=full)
    finally:
        builder.close()


@main.command()
@click.argument("goal", required=False, default="")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--target", "-t", default=None, help="File the goal is centered on.")
@click.option("--max-tokens", "-m", default=None, type=int, help="Token budget override.")
@click.option("--limit", "-l", default=None, type=int, help="Maximum files to rank.")
@click.option("--no-rules", is_flag=True, help="Leave coding rules out of the context.")
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["markdown", "merged", "json"]),
    default="markdown",
    help="Output format (default: markdown).",
)
@click.option("--output", "-o", default=None, help="Write the context to a file.")
def build(
    goal: str, path: str | None, target: str | None, max_tokens: int | None,
    limit: int | None, no_rules: bool, output_format: str, output: str | None,
):
    """Build packed context for GOAL."""
    root = _get_project_root(path)
    builder = _open_builder(root)
    try:
        built = builder.build(
            goal,
            target_file=target,
            max_tokens=max_tokens,
            include_rules=not no_rules,
            limit=limit,
        )
        if output_format == "json":
            rendered = built.model_dump_json(indent=2)
        elif output_format == "merged":
            rendered = builder.to_merged_context(built)
        else:
            rendered = builder.format_for_llm(built)
    finally:
        builder.close()

    if output:
        Path(output).write_text(rendered, encoding="utf-8")
        console.show_build_summary(built)
        console.success(f"Context written to {output}")
    else:
        click.echo(rendered)


@main.command()
@click.argument("query")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--limit", "-l", default=10, type=int, help="Maximum results.")
def search(query: str, path: str | None, limit: int):
    """Search indexed chunks by similarity."""
    root = _get_project_root(path)
    builder = _open_builder(root)
    try:
        results = builder.store.search(query, limit=limit)
    finally:
        builder.close()

    if results:
        console.info(f"Found {len(results)} chunk(s) matching '{query}':")
        console.show_search_results(results)
    else:
        console.warning(f"No results found for '{query}'")


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
def stats(path: str | None):
    """Show index statistics."""
    root = _get_project_root(path)
    builder = _open_builder(root)
    try:
        console.info(f"Project: {root.name}")
        console.show_stats(builder.get_stats())
    finally:
        builder.close()


# =========================================================================
# Config Management
# =========================================================================

@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage ContextOS configuration."""
    root = _get_project_root(path)
    try:
        config = load_config(root)
    except ContextOSError as e:
        console.error(str(e))
        sys.exit(1)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(mode="json"), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: contextos config get <key>")
            sys.exit(1)
        data = config.model_dump(mode="json")
        for part in key.split("."):
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        console.console.print(f"{key} = {data}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: contextos config set <key> <value>")
            sys.exit(1)
        try:
            parsed_value = json.loads(value)
        except json.JSONDecodeError:
            parsed_value = value
        try:
            config = set_config_value(config, key, parsed_value)
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except ValueError as e:
            console.error(f"Invalid value for {key}: {e}")
            sys.exit(1)
        save_config(root, config)
        console.success(f"Set {key} = {parsed_value}")


if __name__ == "__main__":
    main()
