"""
File I/O utilities with locking and graceful error handling.

Includes:
- File locking (file_lock)
- JSON I/O (safe_load_json, atomic_write_json)
- JSONL I/O (iter_jsonl, append_jsonl, write_jsonl)
"""
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator

import msgspec
from filelock import FileLock

from hookkit.config import Timeouts, fast_json_dumps, fast_json_loads, pretty_json_dumps
from hookkit.hook_utils.logging import log_event

PathLike = str | Path


@contextmanager
def file_lock(path: PathLike, timeout: float = Timeouts.FILE_LOCK):
    """
    Context manager for an exclusive advisory lock on ``<path>.lock``.

    Raises filelock.Timeout if the lock is not acquired in time.

    Usage:
        with file_lock("/path/to/file.json", timeout=10.0):
            # perform read-modify-write
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(f"{path}.lock", timeout=timeout)
    lock.acquire()
    try:
        yield
    finally:
        try:
            lock.release()
        except Exception:
            pass


def safe_load_json(path: Path, default: Any = None) -> Any:
    """Load a JSON file, returning default if missing, empty or invalid."""
    if default is None:
        default = {}
    try:
        content = path.read_bytes()
        if content.strip():
            return fast_json_loads(content)
    except FileNotFoundError:
        pass
    except (msgspec.DecodeError, OSError) as e:
        log_event("io", "load_failed", {"path": str(path), "error": str(e)}, "warning")
    return default.copy() if isinstance(default, dict) else default


def atomic_write_bytes(path: Path, data: bytes) -> bool:
    """
    Write bytes atomically using temp file + rename.
    Readers see either the old or the new content, never a torn write.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.stem}_", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(temp_path, path)
            return True
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise
    except Exception as e:
        log_event("io", "write_failed", {"path": str(path), "error": str(e)}, "warning")
        return False


def atomic_write_json(path: Path, data: Any, pretty: bool = False) -> bool:
    """Write JSON atomically. Returns False (and logs) on failure."""
    try:
        payload = pretty_json_dumps(data) if pretty else fast_json_dumps(data)
    except (TypeError, msgspec.EncodeError) as e:
        log_event("io", "encode_failed", {"path": str(path), "error": str(e)}, "warning")
        return False
    return atomic_write_bytes(path, payload)


def iter_jsonl(path: PathLike) -> Iterator[dict]:
    """Iterate over a JSONL file, yielding one parsed object per line.

    Blank lines are skipped. Lines that fail to parse are logged and
    skipped, so one corrupt record never hides the rest of the file.
    """
    path = Path(path)
    try:
        with open(path, 'rb') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield fast_json_loads(line)
                except msgspec.DecodeError:
                    log_event("io", "jsonl_parse_error", {
                        "path": str(path),
                        "line": line_num,
                    }, "warning")
    except FileNotFoundError:
        return
    except OSError as e:
        log_event("io", "read_failed", {"path": str(path), "error": str(e)}, "warning")


def write_jsonl(path: Path, records: Iterable[Any]) -> bool:
    """Atomically replace a JSONL file. An empty iterable leaves an empty file."""
    try:
        payload = b"".join(fast_json_dumps(r) + b"\n" for r in records)
    except (TypeError, msgspec.EncodeError) as e:
        log_event("io", "encode_failed", {"path": str(path), "error": str(e)}, "warning")
        return False
    return atomic_write_bytes(path, payload)


def append_jsonl(path: Path, record: Any) -> bool:
    """Append one record to a JSONL file."""
    try:
        line = fast_json_dumps(record) + b"\n"
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'ab') as f:
            f.write(line)
        return True
    except (OSError, TypeError, msgspec.EncodeError) as e:
        log_event("io", "append_failed", {"path": str(path), "error": str(e)}, "warning")
        return False
