from __future__ import annotations

import os
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TextIO


class FileLockTimeout(RuntimeError):
    pass


# flock is per open file description; serialize threads of this process first.
_THREAD_LOCKS: dict[str, threading.Lock] = {}
_THREAD_LOCKS_GUARD = threading.Lock()


def _thread_lock_for(path: Path) -> threading.Lock:
    key = str(path)
    with _THREAD_LOCKS_GUARD:
        lk = _THREAD_LOCKS.get(key)
        if lk is None:
            lk = threading.Lock()
            _THREAD_LOCKS[key] = lk
        return lk


def _try_lock(fp: TextIO) -> bool:
    if os.name == "nt":
        import msvcrt

        try:
            msvcrt.locking(fp.fileno(), msvcrt.LK_NBLCK, 1)
            return True
        except OSError:
            return False
    import fcntl

    try:
        fcntl.flock(fp.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        return True
    except BlockingIOError:
        return False


def _unlock(fp: TextIO) -> None:
    if os.name == "nt":
        import msvcrt

        msvcrt.locking(fp.fileno(), msvcrt.LK_UNLCK, 1)
        return
    import fcntl

    fcntl.flock(fp.fileno(), fcntl.LOCK_UN)


@contextmanager
def file_lock(path: Path, *, timeout_s: float = 30.0, poll_interval_s: float = 0.05) -> Iterator[None]:
    """
    Exclusive lock shared by every process (and thread) writing the same SQLite file.
    """
    lock_path = Path(path).resolve()
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    tlock = _thread_lock_for(lock_path)
    if not tlock.acquire(timeout=float(timeout_s)):
        raise FileLockTimeout(f"Timed out acquiring lock: {lock_path}")
    try:
        with lock_path.open("a+", encoding="utf-8") as fp:
            deadline = time.monotonic() + float(timeout_s)
            while not _try_lock(fp):
                if time.monotonic() >= deadline:
                    raise FileLockTimeout(f"Timed out acquiring lock: {lock_path}")
                time.sleep(float(poll_interval_s))
            try:
                yield
            finally:
                _unlock(fp)
    finally:
        tlock.release()
