"""
Prompt Mixer - Command Line Interface

Usage:
    prompt-mixer [--settings PATH] [--store PATH] <command> [<args>]

Commands:
    init        Create a collection seeded with the preset libraries
    list        List libraries
    preview     Generate a preview for the current mode
    expand      Enumerate the full cartesian product
    import      Import a config JSON, a table file or a directory of sheets
    export      Export the collection as JSON
    sync        Refresh values from the remembered source
    switch      Activate one source sheet
    config      Show settings

Environment:
    PROMPT_MIXER_HOME    Storage home (default: ~/.prompt-mixer)
"""

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Optional

import typer
import yaml

from prompt_mixer import __version__
from prompt_mixer.core.config import (
    ConfigurationError,
    Settings,
    load_settings,
    validate_settings,
)
from prompt_mixer.core.logging import setup_logging
from prompt_mixer.core.store import (
    ConfigImportError,
    LibraryStore,
    StoreError,
    export_config,
    import_config,
)
from prompt_mixer.engine import CombinationEngine
from prompt_mixer.ingest import parse_master_sheet, parse_table
from prompt_mixer.reconcile import (
    DirectorySource,
    ReconciliationEngine,
    ReconciliationResult,
    ReconciliationStatus,
    import_master_sheets,
    merge_libraries,
)
from prompt_mixer.schemas import CombinationConfig, CombinationMode, ImportMode, PickMode

app = typer.Typer(
    name="prompt-mixer",
    help="Compose prompts from weighted libraries and keep them in sync with their source.",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Inspect settings.", no_args_is_help=True)
app.add_typer(config_app, name="config")

JSON_SUFFIXES = {".json"}


@dataclass
class CliState:
    settings: Settings
    store: LibraryStore


def _fail(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1)


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


def _load(state: CliState) -> CombinationConfig:
    try:
        return state.store.load()
    except StoreError as e:
        _fail(str(e))


def _save(state: CliState, config: CombinationConfig, previous: CombinationConfig) -> None:
    try:
        state.store.apply(config, previous)
    except StoreError as e:
        _fail(str(e))


def _engine(state: CliState, seed: Optional[int] = None) -> CombinationEngine:
    if seed is None:
        seed = state.settings.generation.seed
    return CombinationEngine(seed=seed)


def _reconcile(state: CliState, source: DirectorySource) -> ReconciliationEngine:
    return ReconciliationEngine(source, timeout=state.settings.sync.timeout)


def _directory_source(state: CliState, path: Path | str) -> DirectorySource:
    return DirectorySource(
        path,
        suffixes=state.settings.ingestion.category_suffixes,
        header_categories=state.settings.ingestion.header_categories,
    )


def _report(result: ReconciliationResult) -> None:
    if result.status == ReconciliationStatus.APPLIED:
        typer.secho(f"✓ {result.message}", fg=typer.colors.GREEN)
    elif result.status == ReconciliationStatus.SKIPPED:
        typer.secho(f"⚠ {result.message}", fg=typer.colors.YELLOW)
    else:
        _fail(f"Reconciliation failed, collection unchanged: {result.message}")


# ===== APP CALLBACK =====


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"prompt-mixer {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    settings_path: Annotated[
        Optional[Path],
        typer.Option("--settings", "-s", help="Settings file (default: ./prompt-mixer.yaml)"),
    ] = None,
    store_path: Annotated[
        Optional[Path],
        typer.Option("--store", help="Collection file (default: <home>/libraries.json)"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version"),
    ] = False,
):
    """Prompt Mixer - weighted prompt combinations from synced libraries."""
    try:
        settings = load_settings(settings_path)
    except ConfigurationError as e:
        _fail(str(e))

    setup_logging(settings.storage.home, settings, console=False)
    store = LibraryStore(store_path or settings.storage.store_path)
    ctx.obj = CliState(settings=settings, store=store)

    if settings.sync.auto_sync and ctx.invoked_subcommand not in ("init", "sync", "config"):
        _auto_sync(ctx.obj)


def _auto_sync(state: CliState) -> None:
    config = _load(state)
    if not config.source_spreadsheet_url:
        return
    source = _directory_source(state, config.source_spreadsheet_url)
    result = asyncio.run(_reconcile(state, source).sync(config))
    if result.applied:
        _save(state, result.config, config)
    else:
        typer.secho(f"⚠ Auto-sync skipped: {result.message}", fg=typer.colors.YELLOW, err=True)


# ===== COLLECTION COMMANDS =====


@app.command("init")
def init(
    ctx: typer.Context,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite an existing collection")
    ] = False,
    presets: Annotated[
        bool, typer.Option("--presets/--no-presets", help="Seed the preset libraries")
    ] = True,
):
    """Create a new collection file."""
    state = _state(ctx)
    try:
        config = state.store.init(force=force, with_presets=presets)
    except StoreError as e:
        _fail(str(e))
    typer.secho(
        f"Initialized collection with {len(config.libraries)} libraries at {state.store.path}",
        fg=typer.colors.GREEN,
    )


@app.command("list")
def list_libraries(
    ctx: typer.Context,
    show_all: Annotated[
        bool, typer.Option("--all", "-a", help="Include libraries of inactive sheets")
    ] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
):
    """List libraries of the active sheet (and presets)."""
    config = _load(_state(ctx))
    libraries = list(config.libraries) if show_all else config.visible_libraries()

    if as_json:
        typer.echo(
            json.dumps(
                [library.model_dump(mode="json", by_alias=True) for library in libraries],
                ensure_ascii=False,
                indent=2,
            )
        )
        return

    if not libraries:
        typer.echo("No libraries. Run 'prompt-mixer init' or import a table.")
        return

    typer.echo(f"Mode: {config.combination_mode.value}   Active sheet: {config.current_source_sheet or '-'}")
    typer.echo(f"{'NAME':<20} {'SHEET':<20} {'ON':<3} {'VALUES':>6} {'RATE':>5}  PICK")
    typer.echo("-" * 70)
    for library in libraries:
        pick = library.pick_mode.value
        if library.pick_mode == PickMode.RANDOM_MULTIPLE:
            pick += f" x{library.pick_count}"
        typer.echo(
            f"{library.name[:20]:<20} {(library.source_sheet or '-')[:20]:<20} "
            f"{'y' if library.enabled else 'n':<3} {len(library.values):>6} "
            f"{library.participation_rate:>4}%  {pick}"
        )


# ===== GENERATION COMMANDS =====


@app.command("preview")
def preview(
    ctx: typer.Context,
    count: Annotated[
        Optional[int],
        typer.Option("--count", "-n", min=1, help="Combinations in random mode"),
    ] = None,
    seed: Annotated[Optional[int], typer.Option("--seed", help="Random seed")] = None,
    unique: Annotated[
        bool, typer.Option("--unique", "-u", help="Avoid repeated combinations")
    ] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
):
    """Generate a preview for the configured mode."""
    state = _state(ctx)
    config = _load(state)
    engine = _engine(state, seed)
    count = count or state.settings.generation.innovation_count

    if unique and config.enabled and config.combination_mode == CombinationMode.RANDOM:
        combinations = engine.generate_unique(
            config, count, max_attempts=state.settings.generation.unique_attempts
        )
    else:
        combinations = engine.preview(config, count)

    if as_json:
        typer.echo(json.dumps([c.to_dict() for c in combinations], ensure_ascii=False, indent=2))
        return

    if not config.enabled:
        typer.secho("Generation is disabled for this collection.", fg=typer.colors.YELLOW)
        return

    for index, combination in enumerate(combinations, 1):
        typer.echo(f"{index}. {combination.render(config.insert_template) or '(empty)'}")


@app.command("expand")
def expand(
    ctx: typer.Context,
    seed: Annotated[Optional[int], typer.Option("--seed", help="Random seed")] = None,
    limit: Annotated[
        Optional[int], typer.Option("--limit", min=1, help="Print at most this many")
    ] = None,
):
    """Draw each library's pick count and print the full cartesian product."""
    state = _state(ctx)
    config = _load(state)
    draw = _engine(state, seed).generate_cartesian(config)

    typer.echo(f"Total combinations: {draw.total}")
    for index, combination in enumerate(draw.expand(), 1):
        if limit is not None and index > limit:
            break
        typer.echo(f"{index}. {combination.render(config.insert_template)}")


# ===== IMPORT / EXPORT =====


@app.command("import")
def import_command(
    ctx: typer.Context,
    path: Annotated[
        Path,
        typer.Argument(exists=True, help="Config JSON, table file (.tsv/.csv/.txt) or sheet directory"),
    ],
    mode: Annotated[
        ImportMode, typer.Option("--mode", "-m", help="Merge policy")
    ] = ImportMode.MERGE_ADD,
    sheets: Annotated[
        Optional[list[str]],
        typer.Option("--sheet", help="Sheet name (repeatable; directory or single table)"),
    ] = None,
):
    """Import libraries into the collection.

    Examples:
        prompt-mixer import backup.json --mode replace
        prompt-mixer import scenes.tsv --mode merge-update
        prompt-mixer import ./sheets --sheet Clothing-Master
    """
    state = _state(ctx)
    current = _load(state)

    if path.is_dir():
        source = _directory_source(state, path)
        result = asyncio.run(_reconcile(state, source).import_sheets(current, sheets or None, mode))
        if result.applied:
            _save(state, result.config, current)
        _report(result)
        return

    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        _fail(f"Error reading {path}: {e}")

    if path.suffix.lower() in JSON_SUFFIXES:
        try:
            updated = import_config(text, current, mode)
        except ConfigImportError as e:
            _fail(str(e))
    elif sheets:
        sheet = parse_master_sheet(
            sheets[0],
            text,
            suffixes=state.settings.ingestion.category_suffixes,
            header_categories=state.settings.ingestion.header_categories,
        )
        if sheet is None:
            _fail(f"No library columns found in {path}")
        updated = import_master_sheets(current, [sheet], mode)
    else:
        libraries = parse_table(
            text,
            suffixes=state.settings.ingestion.category_suffixes,
            header_categories=state.settings.ingestion.header_categories,
        )
        if not libraries:
            _fail(f"No libraries found in {path}")
        updated = current.with_libraries(merge_libraries(current.libraries, libraries, mode))

    _save(state, updated, current)
    typer.secho(
        f"✓ Imported {path.name} ({mode.value}): {len(current.libraries)} -> {len(updated.libraries)} libraries",
        fg=typer.colors.GREEN,
    )


@app.command("export")
def export(
    ctx: typer.Context,
    output: Annotated[
        Optional[Path], typer.Option("--output", "-o", help="Write to file instead of stdout")
    ] = None,
):
    """Export the collection as JSON."""
    payload = export_config(_load(_state(ctx)))
    if output is None:
        typer.echo(payload)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(payload, encoding="utf-8")
    typer.secho(f"Exported: {output}", fg=typer.colors.GREEN)


# ===== SYNC =====


@app.command("sync")
def sync(
    ctx: typer.Context,
    source: Annotated[
        Optional[Path],
        typer.Argument(help="Sheet directory (default: the remembered source)"),
    ] = None,
):
    """Refresh library values from the source, keeping local settings."""
    state = _state(ctx)
    current = _load(state)

    location = source or current.source_spreadsheet_url
    if not location:
        _fail("No source remembered. Import sheets first or pass a source directory.")

    adapter = _directory_source(state, location)
    result = asyncio.run(_reconcile(state, adapter).sync(current))
    if result.applied:
        updated = result.config
        if source is not None:
            updated = updated.model_copy(update={"source_spreadsheet_url": adapter.location})
        _save(state, updated, current)
    _report(result)


@app.command("switch")
def switch(
    ctx: typer.Context,
    sheet: Annotated[str, typer.Argument(help="Source sheet to activate")],
):
    """Activate one source sheet: enable its libraries and disable the others."""
    state = _state(ctx)
    current = _load(state)
    known = current.source_sheets()
    if sheet not in known:
        _fail(f"Unknown sheet {sheet!r}. Known sheets: {', '.join(known) or 'none'}")

    _save(state, current.switch_source_sheet(sheet), current)
    typer.secho(f"✓ Active sheet: {sheet}", fg=typer.colors.GREEN)
    instruction = current.linked_instruction_for(sheet)
    if instruction:
        typer.echo(f"Linked instruction: {instruction}")


# ===== CONFIG =====


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Print the effective settings as YAML."""
    settings = _state(ctx).settings
    typer.echo(yaml.safe_dump(settings.model_dump(mode="json"), allow_unicode=True, sort_keys=False))
    for warning in validate_settings(settings):
        typer.secho(f"⚠ {warning}", fg=typer.colors.YELLOW)


if __name__ == "__main__":
    app()
