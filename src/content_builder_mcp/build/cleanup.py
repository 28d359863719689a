"""Workspace cleanup.

Two mechanisms keep the shared temp root from leaking disk:
- finalize_workspace() removes a session's own tree when it is closed
- reap_stale_workspaces() removes trees left behind by processes that
  crashed or were killed before they could finalize
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable
from pathlib import Path

from .errors import CleanupError
from .workspace import Workspace

logger = logging.getLogger(__name__)

# GetExitCodeProcess result for a running process
STILL_ACTIVE = 259

# Largest id any supported platform hands out; bigger numeric names are not ours
MAX_PROCESS_ID = 2**31 - 1


def is_process_alive(pid: int) -> bool:
    """Check whether a process with the given id currently exists.

    Args:
        pid: Process id

    Returns:
        True if the process exists
    """
    if pid <= 0 or pid > MAX_PROCESS_ID:
        return False
    if os.name == "nt":
        return _is_process_alive_windows(pid)
    return _is_process_alive_unix(pid)


def _is_process_alive_unix(pid: int) -> bool:
    """Probe with signal 0."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    except (OverflowError, ValueError):
        return False
    except OSError as e:
        logger.debug(f"Liveness probe for PID {pid} failed: {e}")
        return True
    return True


def _is_process_alive_windows(pid: int) -> bool:
    """Probe with OpenProcess/GetExitCodeProcess."""
    import ctypes
    from ctypes import wintypes

    kernel32 = ctypes.windll.kernel32

    PROCESS_QUERY_LIMITED_INFORMATION = 0x1000
    ERROR_ACCESS_DENIED = 5

    try:
        handle = kernel32.OpenProcess(PROCESS_QUERY_LIMITED_INFORMATION, False, pid)
    except ctypes.ArgumentError:
        return False
    if not handle:
        # Access denied means the process exists but is protected
        return kernel32.GetLastError() == ERROR_ACCESS_DENIED

    try:
        exit_code = wintypes.DWORD()
        if not kernel32.GetExitCodeProcess(handle, ctypes.byref(exit_code)):
            return True
        return exit_code.value == STILL_ACTIVE
    finally:
        kernel32.CloseHandle(handle)


def _subdirectories(directory: Path) -> list[Path]:
    """Immediate subdirectories, empty if directory is gone or unreadable."""
    try:
        return [entry for entry in directory.iterdir() if entry.is_dir()]
    except FileNotFoundError:
        return []
    except OSError as e:
        logger.warning(f"Cannot list {directory}: {e}")
        return []


def reap_stale_workspaces(
    base: str | Path,
    skip_process_id: int | None = None,
    is_alive: Callable[[int], bool] | None = None,
) -> list[int]:
    """Delete workspaces whose owning process no longer exists.

    Directory names under base that are not process ids are left alone.

    Args:
        base: Workspace base directory shared by all processes
        skip_process_id: Process directory never to touch (normally our own)
        is_alive: Process liveness probe (defaults to is_process_alive)

    Returns:
        Process ids whose directories were reaped
    """
    base_path = Path(base)
    probe = is_alive or is_process_alive
    reaped: list[int] = []

    for directory in _subdirectories(base_path):
        if not (directory.name.isascii() and directory.name.isdigit()):
            continue

        pid = int(directory.name)
        if not 0 < pid <= MAX_PROCESS_ID:
            logger.debug(f"Ignoring out-of-range process directory: {directory}")
            continue
        if pid == skip_process_id or probe(pid):
            continue

        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            # Another process reaped it first
            logger.debug(f"Stale workspace already gone: {directory}")
        except OSError as e:
            error = CleanupError(f"Cannot remove stale workspace {directory}: {e}")
            logger.warning(str(error))
            continue

        logger.info(f"Reaped stale workspace of dead process {pid}: {directory}")
        reaped.append(pid)

    return reaped


def finalize_workspace(workspace: Workspace) -> bool:
    """Delete a session's workspace and any ancestors it leaves empty.

    Session directory first, then the process directory if no other session
    of this process still uses it, then the base directory if no other
    process still uses it. Never raises.

    Args:
        workspace: Workspace to tear down

    Returns:
        True if the session directory is gone afterwards
    """
    try:
        shutil.rmtree(workspace.session_dir)
    except FileNotFoundError:
        logger.debug(f"Workspace already removed: {workspace.session_dir}")
    except OSError as e:
        error = CleanupError(f"Cannot remove workspace {workspace.session_dir}: {e}")
        logger.warning(str(error))
        return False

    logger.info(f"Removed build workspace: {workspace.session_dir}")

    for directory in (workspace.process_dir, workspace.base):
        if _subdirectories(directory):
            break
        try:
            directory.rmdir()
        except FileNotFoundError:
            continue
        except OSError as e:
            # Repopulated by a concurrent session; its owner cleans up
            logger.debug(f"Stopped cleanup at {directory}: {e}")
            break

    return True
