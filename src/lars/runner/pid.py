"""PID file management utilities."""

import os
import signal
from dataclasses import dataclass
from pathlib import Path

import psutil

# Tolerance when matching a recorded start time against psutil's
CREATE_TIME_TOLERANCE_SECS = 1.0


@dataclass
class ProcessInfo:
    """Process information from PID file."""

    pid: int
    start_time: float
    alive: bool


def process_create_time(pid: int) -> float | None:
    try:
        return psutil.Process(pid).create_time()
    except psutil.Error:
        return None


def write_pid_file(pid_path: Path, pid: int, start_time: float | None = None) -> None:
    """Write a PID and its process start time to file.

    Args:
        pid_path: Path to the PID file.
        pid: Process ID to write.
        start_time: Process creation time. Defaults to psutil's value.
    """
    if start_time is None:
        start_time = process_create_time(pid) or 0.0
    pid_path.parent.mkdir(parents=True, exist_ok=True)
    pid_path.write_text(f"{pid}\n{start_time}\n")


def read_pid_file(pid_path: Path) -> ProcessInfo | None:
    """Read PID file and check if process is alive.

    Returns:
        ProcessInfo if the file exists and parses, None otherwise.
    """
    if not pid_path.exists():
        return None

    try:
        content = pid_path.read_text().strip().split("\n")
        pid = int(content[0])
        start_time = float(content[1]) if len(content) > 1 else 0.0
    except (ValueError, IndexError, OSError):
        return None
    return ProcessInfo(
        pid=pid, start_time=start_time, alive=is_process_alive(pid, start_time)
    )


def remove_pid_file(pid_path: Path) -> None:
    pid_path.unlink(missing_ok=True)


def is_process_alive(pid: int, start_time: float | None = None) -> bool:
    """Check if a process with given PID is alive.

    Zombies count as dead. When ``start_time`` is given, a process whose
    creation time differs is a reused PID and also counts as dead.
    """
    try:
        proc = psutil.Process(pid)
        if proc.status() == psutil.STATUS_ZOMBIE:
            return False
        if start_time:
            return abs(proc.create_time() - start_time) < CREATE_TIME_TOLERANCE_SECS
        return True
    except psutil.Error:
        return False


def signal_group(pid: int, sig: signal.Signals) -> bool:
    """Send a signal to the process group led by ``pid``.

    Falls back to signalling the process alone when it leads no group.

    Returns:
        True if the signal was sent.
    """
    for send in (os.killpg, os.kill):
        try:
            send(pid, sig)
            return True
        except OSError:
            continue
    return False


def reap(pid: int) -> None:
    """Collect a terminated child of this process, if it is one."""
    try:
        os.waitpid(pid, os.WNOHANG)
    except ChildProcessError:
        pass
