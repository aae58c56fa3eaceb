import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from polysplit.config.loader import load_config
from polysplit.config.models import AppConfig, normalize_layout, parse_mode
from polysplit.domain.errors import (
    ChannelCountMismatch,
    ConfigError,
    ConfirmationRequiredError,
    InvariantViolation,
)
from polysplit.domain.models import ReconcileMode
from polysplit.infrastructure.event_bus import EventBus
from polysplit.infrastructure.ffmpeg import FFmpegAdapter, missing_tools
from polysplit.infrastructure.ffprobe import FFprobeAdapter
from polysplit.infrastructure.file_scanner import FileScanner
from polysplit.infrastructure.filesystem import DryRunReporter, FileSystemActions, is_case_insensitive
from polysplit.infrastructure.housekeeping import HousekeepingService
from polysplit.infrastructure.logging import setup_logging
from polysplit.pipeline.channel_labels import CHANNELS_FILENAME, load_channel_labels, resolve_channels_file
from polysplit.pipeline.job_planner import JobPlanner
from polysplit.pipeline.naming import default_output_root
from polysplit.pipeline.reconciliation import ReconciliationPlanner
from polysplit.pipeline.results import RunResult
from polysplit.pipeline.scheduler import WorkScheduler
from polysplit.ui.prompts import TerminalConfirmation, prompt_path
from polysplit.ui.reporter import ConsoleReporter

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIG = 2
EXIT_CONFIRMATION = 3
EXIT_INVARIANT = 4
EXIT_CHANNEL_MISMATCH = 5
EXIT_INTERRUPTED = 130

# Most specific first
FATAL_EXIT_CODES = (
    (ChannelCountMismatch, EXIT_CHANNEL_MISMATCH),
    (ConfirmationRequiredError, EXIT_CONFIRMATION),
    (InvariantViolation, EXIT_INVARIANT),
    (ConfigError, EXIT_CONFIG),
)

app = typer.Typer(help="PolySplit - split polywav recordings into labeled mono WAV files")


def exit_code_for(error: BaseException) -> int:
    for error_type, code in FATAL_EXIT_CODES:
        if isinstance(error, error_type):
            return code
    return EXIT_UNEXPECTED


def resolve_source(config: AppConfig) -> Path:
    src = config.paths.src or prompt_path("Source folder with polywav files")
    if src is None:
        raise ConfigError("No source folder given (use --src).")
    src = Path(src).expanduser()
    if not src.is_dir():
        raise ConfigError(f"Source folder not found: {src}")
    return src.resolve()


def resolve_labels(config: AppConfig, src: Path):
    """Returns (channels file, labels)."""
    channels_file = resolve_channels_file(config.paths.channels, src)
    if channels_file is None:
        channels_file = prompt_path(f"Channel names file ({CHANNELS_FILENAME})")
    if channels_file is None:
        raise ConfigError(f"Missing channel list: ./{CHANNELS_FILENAME} or {src / CHANNELS_FILENAME}")
    labels = load_channel_labels(channels_file)
    if not labels:
        raise ConfigError(f"Channel list is empty: {channels_file}")
    return channels_file, labels


def run_split(config: AppConfig, bus: EventBus, reporter: ConsoleReporter) -> RunResult:
    """Runs one batch with a fully resolved configuration.

    Raises the fatal PolySplitError subclasses; per-file errors end up in the
    returned RunResult.
    """
    logger = logging.getLogger(__name__)
    general = config.general

    missing = missing_tools()
    if missing:
        raise ConfigError(f"Missing required tool(s) on PATH: {', '.join(missing)}")

    src = resolve_source(config)

    layout, fell_back = normalize_layout(general.layout)
    if fell_back:
        logger.warning(f"Unknown layout '{general.layout}', falling back to flat")
        reporter.warn(f"Unknown --layout '{general.layout}', using flat.")

    out = config.paths.out or default_output_root(src, datetime.now().date())
    out = Path(out).expanduser().resolve()

    channels_file, labels = resolve_labels(config, src)
    workers = general.effective_workers
    mode = general.mode

    logger.info(f"PolySplit started: src={src}, out={out}, channels={channels_file}")
    logger.info(
        f"Config: layout={layout.value}, mode={mode.value}, workers={workers}, "
        f"pad={general.pad_width}, dry_run={general.dry_run}, debug={general.debug}"
    )
    reporter.print_header(src, out, layout, mode, workers, labels, dry_run=general.dry_run)

    fs = FileSystemActions(dry_run=general.dry_run, reporter=DryRunReporter(bus))
    reconciler = ReconciliationPlanner(
        fs,
        confirmation=TerminalConfirmation(),
        assume_yes=general.assume_yes,
        event_bus=bus,
    )
    reconcile_plan = reconciler.reconcile(out, mode)
    root = reconcile_plan.final_root

    if mode == ReconcileMode.RESUME and root.is_dir():
        HousekeepingService(fs).cleanup_temp_files(root)

    excluded = [reconcile_plan.requested_root, root]
    if reconcile_plan.backup_root is not None:
        excluded.append(reconcile_plan.backup_root)
    scanner = FileScanner(extensions=general.extensions, exclude_dirs=excluded)

    planner = JobPlanner(
        prober=FFprobeAdapter(),
        labels=labels,
        mode=mode,
        layout=layout,
        output_root=root,
        pad_width=general.pad_width,
    )
    executor = FFmpegAdapter(loglevel=general.ffmpeg_loglevel, debug=general.debug)
    scheduler = WorkScheduler(
        planner, executor, fs, bus,
        workers=workers,
        case_insensitive_outputs=is_case_insensitive(root),
    )

    result = scheduler.run(scanner.scan(src))
    if result.discovered == 0:
        reporter.warn(f"No polywav files found under {src}")
    logger.info(f"PolySplit finished: output root {root}")
    return result


@app.command()
def split(
    src: Optional[Path] = typer.Option(None, "--src", "-s", help="Folder with polywav files (searched recursively)"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Output root (default: {src parent}/polywav_split_YYYY-MM-DD)"),
    channels: Optional[Path] = typer.Option(None, "--channels", "-c", help="Channel names file (one label per line)"),
    layout: Optional[str] = typer.Option(None, "--layout", help="Output layout: flat or folders"),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help="Existing output: backup, overwrite, new or resume"),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", min=0, help="Files processed in parallel (0 or omitted: auto)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask before deleting in overwrite mode"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would happen, change nothing"),
    pad: Optional[int] = typer.Option(None, "--pad", min=1, max=6, help="Digits of the channel number in file names"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to YAML config"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    loglevel: Optional[str] = typer.Option(None, "--loglevel", help="ffmpeg -loglevel value"),
    debug: Optional[bool] = typer.Option(None, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Split every polywav file under --src into one labeled mono WAV per channel."""
    try:
        config = load_config(config_path) if config_path else AppConfig()
        # Apply CLI overrides
        if src is not None: config.paths.src = src
        if out is not None: config.paths.out = out
        if channels is not None: config.paths.channels = channels
        if layout is not None: config.general.layout = layout
        if mode is not None:
            try:
                config.general.mode = parse_mode(mode)
            except ValueError as exc:
                raise ConfigError(str(exc)) from exc
        if workers is not None: config.general.workers = workers or None
        if yes: config.general.assume_yes = True
        if dry_run: config.general.dry_run = True
        if pad is not None: config.general.pad_width = pad
        if log_path is not None: config.general.log_path = log_path
        if loglevel is not None: config.general.ffmpeg_loglevel = loglevel
        if debug is not None: config.general.debug = debug
    except ConfigError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_CONFIG)

    logger = setup_logging(config.general.log_path, debug=config.general.debug)
    bus = EventBus()
    reporter = ConsoleReporter(bus)

    try:
        result = run_split(config, bus, reporter)
    except (KeyboardInterrupt, typer.Abort):
        logger.warning("Interrupted by user (Ctrl+C)")
        typer.secho("\nStopped by user (Ctrl+C)", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=EXIT_INTERRUPTED)
    except Exception as exc:
        code = exit_code_for(exc)
        if code == EXIT_UNEXPECTED:
            logger.exception(f"Unexpected error: {exc}")
        else:
            logger.error(f"{type(exc).__name__}: {exc}")
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=code)

    if result.failed:
        logger.warning(f"{result.failed} file(s) failed: {'; '.join(result.error_messages)}")


if __name__ == "__main__":
    app()
