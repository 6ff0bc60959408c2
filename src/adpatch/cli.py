"""CLI commands for adapting unified diffs onto extracted builds."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .config import DEFAULT_CONFIG_NAME, AdaptivePatchConfig, load_config
from .engine import ApplicationRecord, PatchContext, apply_patch_file, locate_target_files, parse_unified_diff
from .errors import AdaptivePatchError, ConfigError, NoTargetFileFound, PatchInputError
from .utils.paths import resolve_extracted_version_path, resolve_patch_inputs

APP_HELP = "Re-apply unified diffs onto shifted snapshots of a bundled JavaScript tree."
LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s - %(message)s"

app = typer.Typer(help=APP_HELP)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(format=LOG_FORMAT, level=logging.DEBUG if verbose else logging.WARNING)


def _load_config_or_exit(config: str) -> AdaptivePatchConfig:
    try:
        return load_config(Path(config))
    except ConfigError as error:
        typer.echo(f"Failed to load config: {error}")
        raise typer.Exit(code=1) from error


def _resolve_target_root(settings: AdaptivePatchConfig, src: Optional[str], version: Optional[str]) -> Path:
    """Turn ``--src`` or ``--version`` into an existing target directory."""
    if src and version:
        typer.echo("Use either --src or --version, not both.")
        raise typer.Exit(code=1)
    if not src and not version:
        typer.echo("A target is required: pass --src=<path> or --version=<version>.")
        raise typer.Exit(code=1)

    try:
        if version:
            target_root = resolve_extracted_version_path(version, settings.paths.extracted, settings.base_dir)
        else:
            target_root = settings.resolve(src)
    except PatchInputError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error

    if not target_root.is_dir():
        typer.echo(f"Target directory not found: {target_root}")
        raise typer.Exit(code=1)
    return target_root


def _render_record(record: ApplicationRecord, show_diff: bool) -> None:
    target = record.target_path.as_posix() if record.target_path else "?"
    if record.status == "failed":
        typer.echo(f"[failed] {record.source_path} -> {target}: {record.error}")
    elif record.status == "already-applied":
        typer.echo(f"[skipped] {record.source_path} -> {target} (already applied)")
    else:
        label = "[dry-run]" if record.dry_run else "[applied]"
        typer.echo(f"{label} {record.source_path} -> {target}")
        if record.skipped_hunks:
            typer.echo(f"    {record.skipped_hunks} hunk(s) already applied")
    for warning in record.warnings:
        typer.echo(f"    ! {warning}")
    if show_diff and record.diff:
        typer.echo(record.diff.rstrip("\n"))


@app.command()
def apply(
    src: Optional[str] = typer.Option(
        None,
        "--src",
        help="Target directory to patch.",
    ),
    version: Optional[str] = typer.Option(
        None,
        "--version",
        help="Extracted build version to patch (looked up under paths.extracted).",
    ),
    patch_file: Optional[str] = typer.Option(
        None,
        "--patch-file",
        "--patchFile",
        help="Single diff document to apply.",
    ),
    patch_dir: Optional[str] = typer.Option(
        None,
        "--patch-dir",
        "--patchDir",
        help="Directory of *.patch / *.diff documents (defaults to paths.patches).",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "--dryRun",
        help="Compute every change without writing files.",
    ),
    show_diff: bool = typer.Option(
        False,
        "--show-diff",
        help="Print a unified diff of each change.",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the adpatch configuration file.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging and telemetry events.",
    ),
) -> None:
    """Adaptively apply diff documents to a target tree."""
    _configure_logging(verbose)
    settings = _load_config_or_exit(config)
    target_root = _resolve_target_root(settings, src, version)

    try:
        patch_paths: List[Path] = resolve_patch_inputs(
            settings.base_dir,
            settings.paths.patches,
            patch_file=patch_file,
            patch_dir=patch_dir,
        )
    except PatchInputError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error

    context = PatchContext(target_root, encoding=settings.encoding)
    failed = False
    for patch_path in patch_paths:
        typer.echo(f"Applying patch: {patch_path}")
        try:
            records = apply_patch_file(target_root, patch_path, dry_run, context=context, rules=settings.rules)
        except (AdaptivePatchError, OSError) as error:
            typer.echo(f"[failed] {patch_path}: {error}")
            failed = True
            continue
        for record in records:
            _render_record(record, show_diff)
            failed = failed or not record.ok

    if failed:
        raise typer.Exit(code=1)


@app.command()
def locate(
    patch_file: str = typer.Option(
        ...,
        "--patch-file",
        "--patchFile",
        help="Diff document whose target files should be located.",
    ),
    src: Optional[str] = typer.Option(
        None,
        "--src",
        help="Target directory to search.",
    ),
    version: Optional[str] = typer.Option(
        None,
        "--version",
        help="Extracted build version to search.",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the adpatch configuration file.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
) -> None:
    """Show which target files each file patch would be applied to."""
    _configure_logging(verbose)
    settings = _load_config_or_exit(config)
    target_root = _resolve_target_root(settings, src, version)
    patch_path = settings.resolve(patch_file)

    try:
        file_patches = parse_unified_diff(patch_path.read_text(encoding="utf-8"))
    except (AdaptivePatchError, OSError) as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error

    context = PatchContext(target_root, encoding=settings.encoding)
    missing = False
    for file_patch in file_patches:
        typer.echo(f"{file_patch.source_path}:")
        try:
            matches = locate_target_files(context, file_patch)
        except NoTargetFileFound as error:
            typer.echo(f"  no match: {error}")
            missing = True
            continue
        for match in matches:
            typer.echo(f"  {context.relative(match.path)} ({match.reason}, {match.exact_lines} exact line(s))")

    if missing:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
