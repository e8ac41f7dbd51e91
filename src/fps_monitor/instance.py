"""Single-instance handling: PID file and replacement of a previous server.

Only one server can own the HTTP port, so a new ``fps-monitor serve``
terminates any earlier instance before binding.
"""

import os
from pathlib import Path

import psutil
import structlog

log = structlog.get_logger()

_NAMES = ("fps-monitor", "fps_monitor")


def is_server_cmdline(cmdline: list[str]) -> bool:
    """Return True if a command line is an fps-monitor server."""
    joined = " ".join(cmdline).lower()
    return any(name in joined for name in _NAMES) and "serve" in cmdline


def find_previous_instances() -> list[psutil.Process]:
    """Return other running fps-monitor servers.

    The current process and its ancestors (launcher shims) are excluded.
    """
    current = psutil.Process()
    excluded = {current.pid} | {parent.pid for parent in current.parents()}

    found = []
    for proc in psutil.process_iter(attrs=["pid", "cmdline"]):
        try:
            if proc.info["pid"] in excluded:
                continue
            if is_server_cmdline(proc.info.get("cmdline") or []):
                found.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
    return found


def terminate_previous_instances(timeout: float = 3.0) -> list[int]:
    """Terminate other fps-monitor servers, killing those that linger.

    Returns the PIDs that were signalled. Processes that vanish or can't be
    inspected are skipped.
    """
    procs = find_previous_instances()
    signalled = []
    for proc in procs:
        try:
            log.info("terminating_previous_instance", pid=proc.pid)
            proc.terminate()
            signalled.append(proc)
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            log.warning("previous_instance_access_denied", pid=proc.pid)

    _, alive = psutil.wait_procs(signalled, timeout=timeout)
    for proc in alive:
        try:
            log.warning("killing_previous_instance", pid=proc.pid)
            proc.kill()
        except psutil.NoSuchProcess:
            pass

    return [proc.pid for proc in signalled]


def write_pid_file(path: Path) -> None:
    """Write the current PID to ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(str(os.getpid()))
    log.debug("pid_file_written", path=str(path))


def remove_pid_file(path: Path) -> None:
    """Remove ``path`` if it still holds the current PID."""
    if read_pid_file(path) == os.getpid():
        path.unlink()
        log.debug("pid_file_removed")


def read_pid_file(path: Path) -> int | None:
    """Return the PID stored in ``path``, or None if missing or invalid."""
    try:
        return int(path.read_text().strip())
    except FileNotFoundError:
        return None
    except ValueError:
        log.warning("pid_file_invalid", reason="not a number", path=str(path))
        return None


def running_pid(path: Path) -> int | None:
    """Return the PID from ``path`` if that process is a live fps-monitor server.

    Verifies the command line, so a stale PID reused by another process after
    a reboot is not reported as running.
    """
    pid = read_pid_file(path)
    if pid is None:
        return None
    try:
        proc = psutil.Process(pid)
        if is_server_cmdline(proc.cmdline()):
            return pid
        log.debug("pid_file_stale", reason="different process", pid=pid, actual=proc.name())
    except psutil.NoSuchProcess:
        log.debug("pid_file_stale", reason="process not found", pid=pid)
    except psutil.AccessDenied:
        # Can't inspect process - assume it's running to be safe
        return pid
    return None
