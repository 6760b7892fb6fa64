"""
Reaping of Electron helper processes.

Electron forks GPU, renderer and utility helpers. Terminating the main
process usually takes them down, but a crashed or wedged main process can
leave orphans holding the temp profile directory open. The launcher snapshots
the process tree while the main process is still alive and reaps whatever is
left after it exits.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence

import psutil

logger = logging.getLogger(__name__)


def snapshot_children(pid: int) -> List[psutil.Process]:
    """All descendants of ``pid``; empty if it is already gone."""
    try:
        return psutil.Process(pid).children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return []


def reap_processes(procs: Sequence[psutil.Process], timeout: float = 5.0) -> int:
    """
    SIGTERM every surviving process, wait, then SIGKILL the stragglers.

    Returns:
        Number of processes that had to be force killed.
    """
    survivors = []
    for proc in procs:
        try:
            if proc.is_running():
                proc.terminate()
                survivors.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    if not survivors:
        return 0

    gone, alive = psutil.wait_procs(survivors, timeout=timeout)
    for proc in alive:
        try:
            logger.warning(f"[REAPER] Force killing leftover helper PID {proc.pid}")
            proc.kill()
        except psutil.NoSuchProcess:
            pass
    if alive:
        psutil.wait_procs(alive, timeout=2.0)

    logger.debug(f"[REAPER] Reaped {len(gone)} helper(s), killed {len(alive)}")
    return len(alive)


async def reap_processes_async(procs: Sequence[psutil.Process], timeout: float = 5.0) -> int:
    """``reap_processes`` off the event loop; ``wait_procs`` blocks."""
    if not procs:
        return 0
    return await asyncio.to_thread(reap_processes, procs, timeout)


__all__ = ["snapshot_children", "reap_processes", "reap_processes_async"]
