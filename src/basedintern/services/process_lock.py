from __future__ import annotations

import fcntl
import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from basedintern.errors import InstanceLockedError


@dataclass(frozen=True)
class ProcessLock:
    path: Path
    pid: int


def lock_path_for(state_path: str | Path) -> Path:
    resolved = Path(state_path).expanduser().resolve()
    return resolved.with_name(resolved.name + ".lock")


def read_owner_pid(lock_path: Path) -> int | None:
    try:
        text = lock_path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return int(text) if text.isdigit() else None


def _pid_appears_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


@contextmanager
def single_instance_lock(state_path: str | Path) -> Iterator[ProcessLock]:
    """Hold an exclusive flock next to the state file for the lifetime of the block.

    Intended for local filesystems; flock over some network filesystems is unreliable.
    """
    path = lock_path_for(state_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_CREAT | os.O_RDWR)
    fh: BinaryIO = os.fdopen(fd, "r+b")
    pid = os.getpid()
    lock_acquired = False
    try:
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            lock_acquired = True
        except OSError as exc:
            owner = read_owner_pid(path)
            owner_text = (
                f" owner_pid={owner} owner_alive={_pid_appears_alive(owner)}"
                if owner is not None
                else ""
            )
            raise InstanceLockedError(
                "LOCKED: another basedintern instance is already running "
                f"for state_path={Path(state_path).expanduser().resolve()} "
                f"lock_path={path}.{owner_text}"
            ) from exc

        fh.seek(0)
        fh.truncate(0)
        fh.write(f"{pid}\n".encode())
        fh.flush()
        os.fsync(fh.fileno())
        yield ProcessLock(path=path, pid=pid)
    finally:
        if lock_acquired:
            try:
                fh.seek(0)
                fh.truncate(0)
            except OSError:
                pass
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        fh.close()
