"""Safe file I/O utilities.

Whole-document JSON writes with file locking (``fcntl``), ``fsync`` and an
atomic rename, so a crash or a concurrent writer never leaves a partially
written configuration document behind.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any


@contextlib.contextmanager
def exclusive_lock(path: Path) -> Iterator[None]:
    """Hold an exclusive lock on ``<path>.lock`` for the duration.

    The lock file sits beside the target so the target itself can be
    replaced by rename while the lock is held.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    lock_path = path.with_name(path.name + ".lock")
    with open(lock_path, "a") as lock:
        fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock.fileno(), fcntl.LOCK_UN)


def read_json(path: Path) -> Any:
    """Read a JSON document. Raises ``FileNotFoundError`` / ``ValueError``."""
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def write_json_atomic(path: Path, data: Any) -> None:
    """Replace *path* with the JSON encoding of *data*.

    * The document is written to a temp file in the same directory and
      ``fsync``-ed before ``os.replace`` swaps it in.
    * The caller is responsible for locking (see ``exclusive_lock``).
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise
