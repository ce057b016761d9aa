"""
Roadmap lock for roadsync.

Uses flock on a lock file next to the roadmap so that only one command
read-modify-writes the roadmap and the entity store at a time.
"""

import fcntl
import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path

from roadsync.lib.errors import LockTimeout

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1


@contextmanager
def roadmap_lock(lock_file: Path, timeout: float):
    """
    Acquire the exclusive roadmap lock, yield, release on exit.

    The lock file is never deleted: removing it would let two processes hold
    "exclusive" locks on different inodes at the same path.

    Raises:
        LockTimeout: if the lock is not acquired within timeout seconds
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    fd = open(lock_file, 'a+')
    start = time.monotonic()

    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            break
        except BlockingIOError:
            if time.monotonic() - start > timeout:
                fd.close()
                raise LockTimeout(f"Could not acquire roadmap lock {lock_file} within {timeout}s")
            time.sleep(POLL_INTERVAL)

    try:
        fd.seek(0)
        fd.truncate()
        fd.write(f"{os.getpid()}\n")
        fd.flush()
        logger.debug(f"[LOCK] acquired {lock_file}")
        yield
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        fd.close()
        logger.debug(f"[LOCK] released {lock_file}")
