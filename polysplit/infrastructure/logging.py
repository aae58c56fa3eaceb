import logging
from pathlib import Path

DEFAULT_LOG_PATH = Path("/tmp/polysplit/polysplit.log")

def setup_logging(log_path: Path = DEFAULT_LOG_PATH, debug: bool = False) -> logging.Logger:
    """
    Setup logging configuration for PolySplit.

    The log file lives outside the output tree, so a dry run leaves the
    destination untouched.
    Returns configured logger instance.

    Args:
        log_path: Path to the log file (parent directories are created)
        debug: If True, enable DEBUG level logging with ffmpeg command lines
    """
    log_file = Path(log_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.FileHandler(log_file)],
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: {log_file} (debug={'ON' if debug else 'OFF'})")

    return logger
