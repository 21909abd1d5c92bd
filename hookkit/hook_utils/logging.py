"""
Diagnostic logging.

Uses loguru for structured JSON logging with automatic rotation.
The library stays silent until configure_logging(debug=True) is called,
so a hook never writes diagnostics the host did not ask for.
"""
import sys
from pathlib import Path

from loguru import logger

from hookkit.config import Paths

# Silent by default; enabled per manager in debug mode
logger.disable("hookkit")

_LEVELS = {"warn": "WARNING", "fatal": "CRITICAL"}
_sink_ids: list[int] = []


def configure_logging(debug: bool, log_dir: Path | None = None) -> None:
    """Configure loguru sinks for this process.

    Debug mode adds a stderr sink and a serialized JSONL file sink under
    ``<log_dir>/logs``. Without debug all hookkit records are dropped.
    """
    for sink_id in _sink_ids:
        try:
            logger.remove(sink_id)
        except ValueError:
            pass
    _sink_ids.clear()

    if not debug:
        logger.disable("hookkit")
        return

    # Drop only loguru's default stderr sink; sinks the hook script added stay
    try:
        logger.remove(0)
    except ValueError:
        pass
    logger.enable("hookkit")
    _sink_ids.append(logger.add(
        sys.stderr,
        level="DEBUG",
        format="[hookkit] {extra[component]}: {message}",
        filter="hookkit",
        catch=True,
    ))

    if log_dir is None:
        return
    try:
        logs_dir = Path(log_dir) / Paths.LOGS_DIR
        logs_dir.mkdir(parents=True, exist_ok=True)
        _sink_ids.append(logger.add(
            logs_dir / Paths.DEBUG_LOG_FILE,
            level="DEBUG",
            format="{message}",
            serialize=True,  # JSON output
            rotation="10 MB",
            retention=3,
            compression="gz",
            filter="hookkit",
            catch=True,  # Never raise
        ))
    except OSError as e:
        log_event("logging", "file_sink_error", {"error": str(e)}, "warning")


def log_event(component: str, event_type: str, data: dict = None, level: str = "info") -> None:
    """
    Log a structured event using loguru.

    Args:
        component: Emitting component (e.g., "retry_queue", "context_store")
        event_type: Event type (e.g., "dropped", "write_failed")
        data: Additional context data, stored in the record's extra
        level: Log level (debug, info, warning, error)
    """
    try:
        level_name = _LEVELS.get(level.lower(), level.upper())
        logger.bind(component=component, **(data or {})).log(level_name, event_type)
    except Exception:
        pass  # Never raise
