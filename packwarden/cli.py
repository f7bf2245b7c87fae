# packwarden/cli.py
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import typer

from packwarden.catalog.client import CatalogService, catalogFromSettings
from packwarden.catalog.diff import DiffItem, DiffResult, diffBundle
from packwarden.catalog.install import FinishReason, importBundle
from packwarden.config.settings import Settings, loadSettings
from packwarden.core.errors import PackwardenError
from packwarden.core.logging import configureLogging, setLogContext
from packwarden.pack.index import Index
from packwarden.pack.modify import modifyRecord
from packwarden.pack.pack import Pack, initPack, loadPack
from packwarden.pack.validate import validatePack

logger = logging.getLogger(__name__)

__all__ = ["app", "main", "CliState", "renderDiff"]

app = typer.Typer(help="Keep a mod pack's index, metadata records and catalog state in sync.", no_args_is_help=True)



@dataclass
class CliState:
    """Per-invocation state. Tests pass a prepared instance as the click `obj`."""
    packDir: Path = field(default_factory=Path.cwd)
    packFile: str = "pack.json5"
    settings: Settings | None = None
    catalogFactory: Callable[[Settings], CatalogService] = catalogFromSettings
    sleep: Callable[[float], None] = time.sleep
    handleSignals: bool = True
    configureLogs: bool = True

    @property
    def packPath(self) -> Path:
        return self.packDir / self.packFile

    def requireSettings(self) -> Settings:
        if self.settings is None:
            self.settings = loadSettings(self.packDir)
        return self.settings



@contextmanager
def _reportErrors() -> Iterator[None]:
    """Fatal errors become one line on stderr and exit code 1."""
    try:
        yield
    except (PackwardenError, LookupError, OSError) as err:
        logger.debug("Command failed", exc_info=True)
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(1) from err



def _state(ctx: typer.Context) -> CliState:
    return ctx.obj



def _loadPackAndIndex(state: CliState) -> tuple[Pack, Index]:
    pack = loadPack(state.packPath)
    return pack, pack.loadIndex()



@app.callback()
def root(
    ctx: typer.Context,
    packFile: Optional[Path] = typer.Option(None, "--pack-file", help="Path to the pack file (default: ./pack.json5)"),
    catalogUrl: Optional[str] = typer.Option(None, "--catalog-url", help="Catalog API base URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    logJson: Optional[Path] = typer.Option(None, "--log-json", help="Also write JSON logs to this file"),
) -> None:
    state = ctx.obj if isinstance(ctx.obj, CliState) else CliState()
    overrides: dict[str, object] = {"catalog.baseUrl": catalogUrl}
    if packFile is not None:
        state.packDir = packFile.parent if str(packFile.parent) else Path.cwd()
        state.packFile = packFile.name
        overrides["pack.file"] = packFile.name

    with _reportErrors():
        settings = loadSettings(state.packDir, overrides)
    state.settings = settings
    state.packFile = str(settings.get("pack.file", state.packFile))
    ctx.obj = state

    if state.configureLogs:
        configureLogging(
            "DEBUG" if verbose else str(settings.get("logging.level", "INFO")),
            jsonFile=logJson or settings.get("logging.jsonFile"),
            suppressRecurring=settings.getBool("logging.suppressRecurring", False),
        )
    setLogContext(command=ctx.invoked_subcommand)



# ----- init / refresh -----

@app.command()
def init(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Pack name"),
    gameVersion: str = typer.Option("", "--game-version", help="Game version, e.g. 1.20.1"),
    loader: Optional[str] = typer.Option(None, "--loader", help="Loader and version, e.g. fabric=0.15.7"),
) -> None:
    """Create a pack file and an empty index."""
    state = _state(ctx)
    loaders: dict[str, str] = {}
    if loader:
        loaderName, _, loaderVersion = loader.partition("=")
        loaders[loaderName.strip().lower()] = loaderVersion.strip()
    with _reportErrors():
        initPack(state.packPath, name=name, gameVersion=gameVersion, loaders=loaders)
    typer.echo(f"Created pack '{name}' at {state.packPath}")


@app.command()
def refresh(ctx: typer.Context) -> None:
    """Rehash every indexed file and pick up untracked metadata records."""
    state = _state(ctx)
    with _reportErrors():
        pack, index = _loadPackAndIndex(state)
        stats = index.refresh()
        index.write()
        pack.updateIndexHash(index)
        pack.write()
    typer.echo(f"Index refreshed: {stats.updated} updated, {stats.added} added, {stats.removed} removed")



# ----- import -----

@app.command("import")
def importCommand(
    ctx: typer.Context,
    bundle: Path = typer.Argument(..., help="Bundle archive (.mrpack) to import"),
) -> None:
    """Install every catalog artifact of a bundle into the pack."""
    state = _state(ctx)
    settings = state.requireSettings()
    with _reportErrors():
        pack, index = _loadPackAndIndex(state)
        catalog = state.catalogFactory(settings)
        try:
            result = importBundle(
                bundle, pack, index, catalog, settings,
                sleep=state.sleep,
                handleSignals=state.handleSignals,
            )
        finally:
            close = getattr(catalog, "close", None)
            if callable(close):
                close()

    summary = result.summary
    typer.echo(f"Import summary: {summary}")
    if result.overridesCopied:
        typer.echo(f"Copied {result.overridesCopied} override file(s)")
    for failedPath in result.overridesFailed:
        typer.echo(f"  override not copied: {failedPath}", err=True)
    for failure in summary.failures:
        typer.echo(f"  failed: {failure}", err=True)
    if summary.reason is FinishReason.INTERRUPTED:
        typer.echo("Import interrupted; progress saved", err=True)
        raise typer.Exit(1)
    if summary.failed:
        typer.echo(f"{summary.failed} artifact(s) failed to install. You may need to install them manually.")
    typer.echo("Import completed!")



# ----- diff -----

def _renderItems(title: str, marker: str, items: list[DiffItem], *, showVersion: bool = False) -> list[str]:
    if not items:
        return []
    lines = [f"{title} ({len(items)}):"]
    for item in items:
        label = item.version if showVersion else item.projectId
        lines.append(f"  {marker} {item.name} [{label}] (side: {item.side})")
    return lines + [""]


def renderDiff(result: DiffResult) -> list[str]:
    lines: list[str] = []
    lines += _renderItems("Missing from current pack", "+", result.missing)
    lines += _renderItems("Extra in current pack", "-", result.extra)
    lines += _renderItems("Version differences", "~", result.changed, showVersion=True)
    if result.identical:
        lines += ["No differences found!", ""]

    sources = result.localSources
    lines.append("=== Summary ===")
    lines.append("Current pack records by source:")
    lines.append(f"- Catalog: {sources.modrinth}")
    if sources.curseforge:
        lines.append(f"- CurseForge: {sources.curseforge}")
    if sources.url:
        lines.append(f"- Direct URLs: {sources.url}")
    if sources.other:
        lines.append(f"- Other sources: {sources.other}")
    if sources.noProjectId:
        lines.append(f"- Catalog records without a project ID: {sources.noProjectId}")
    if sources.unreadable:
        lines.append(f"- Unreadable: {sources.unreadable}")
    lines.append(f"Total: {sources.total}")
    lines.append(f"Bundle: {result.remoteCount} catalog artifact(s), {result.unresolvedFiles} unresolved file(s)")
    lines.append(f"Missing: {len(result.missing)}, extra: {len(result.extra)}, changed: {len(result.changed)}")
    if sources.notCompared:
        lines.append(f"Note: {sources.notCompared} non-catalog record(s) were not compared")
    return lines


@app.command()
def diff(
    ctx: typer.Context,
    bundle: Path = typer.Argument(..., help="Bundle archive (.mrpack) to compare against"),
) -> None:
    """Compare the pack's catalog artifacts with a bundle. Writes nothing."""
    state = _state(ctx)
    settings = state.requireSettings()
    with _reportErrors():
        _pack, index = _loadPackAndIndex(state)
        catalog = state.catalogFactory(settings)
        try:
            manifest, result = diffBundle(bundle, index, catalog, settings)
        finally:
            close = getattr(catalog, "close", None)
            if callable(close):
                close()

    typer.echo(f"Comparing with bundle '{manifest.name}'")
    for line in renderDiff(result):
        typer.echo(line)



# ----- modify -----

@app.command()
def modify(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Record name, slug or file stem"),
    side: Optional[str] = typer.Option(None, "--side", help="client, server or both"),
    pin: Optional[bool] = typer.Option(None, "--pin/--no-pin", help="Exclude from (or include in) automatic updates"),
    disabledClientPlatforms: Optional[str] = typer.Option(
        None, "--disabled-client-platforms", help='Comma separated: macos,linux,windows ("" clears)'
    ),
    optional: Optional[bool] = typer.Option(None, "--optional/--no-optional", help="Mark as optional"),
    optionalDescription: Optional[str] = typer.Option(None, "--optional-description", help="Description shown for the option"),
    optionalDefault: Optional[bool] = typer.Option(None, "--optional-default/--no-optional-default", help="Enabled by default"),
) -> None:
    """Change side, pin, disabled platforms or optional settings of one record."""
    state = _state(ctx)
    platforms = disabledClientPlatforms.split(",") if disabledClientPlatforms is not None else None
    with _reportErrors():
        pack, index = _loadPackAndIndex(state)
        result = modifyRecord(
            pack, index, name,
            side=side,
            pin=pin,
            disabledClientPlatforms=platforms,
            optional=optional,
            optionalDescription=optionalDescription,
            optionalDefault=optionalDefault,
        )
    if not result.changed:
        typer.echo("No changes specified. Use --help to see available options.")
        return
    for change in result.changes:
        typer.echo(f"  {change}")
    typer.echo(f"Modified '{result.record.name}'")



# ----- validate -----

@app.command()
def validate(ctx: typer.Context) -> None:
    """Check pack file, index, records and on-disk files. Exit 1 on any error."""
    state = _state(ctx)
    with _reportErrors():
        pack, index = _loadPackAndIndex(state)
        report = validatePack(pack, index, state.packDir)

    typer.echo(f"Validating pack: {pack.name}")
    for finding in report.errors:
        typer.echo(f"  ERROR: {finding}")
    for finding in report.warnings:
        typer.echo(f"  WARNING: {finding}")

    typer.echo(
        f"Files checked: {report.filesChecked} total, {report.metaFiles} metadata, "
        f"{report.filesChecked - report.metaFiles} other"
    )
    if not report.ok:
        typer.echo(f"Validation failed with {len(report.errors)} error(s) and {len(report.warnings)} warning(s)")
        raise typer.Exit(1)
    if report.warnings:
        typer.echo(f"Validation passed with {len(report.warnings)} warning(s)")
    else:
        typer.echo("Validation passed with no issues!")



def main() -> None:
    app()
