"""Build manager - process-wide singleton creating content build sessions.

Provides:
- The process-local session salt counter
- Workspace allocation followed by stale workspace reaping
- Bulk shutdown of open sessions
"""

from __future__ import annotations

import logging
import threading
import weakref
from pathlib import Path
from typing import Any

from .cleanup import finalize_workspace, reap_stale_workspaces
from .engine import BuildEngine
from .policy import ContentPolicy
from .session import TOOL_IDENTITY, ContentBuilder
from .state import BuildState
from .workspace import allocate_workspace

logger = logging.getLogger(__name__)


class BuildManager:
    """Singleton factory for content build sessions.

    The salt counter starts at zero when the process starts and is
    incremented before each allocation, so the first session gets salt 1.
    It is never reset: salts are not reused within a process.

    Usage:
        manager = BuildManager()
        with manager.create_session() as builder:
            ...
    """

    _instance: BuildManager | None = None
    _lock = threading.Lock()

    def __new__(cls) -> BuildManager:
        """Singleton pattern."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        """Initialize manager (only once)."""
        if self._initialized:
            return
        self._salt = 0
        self._salt_lock = threading.Lock()
        self._sessions: weakref.WeakValueDictionary[int, ContentBuilder] = (
            weakref.WeakValueDictionary()
        )
        self._initialized = True

    def next_salt(self) -> int:
        """Reserve the next session salt."""
        with self._salt_lock:
            self._salt += 1
            return self._salt

    def create_session(
        self,
        engine: BuildEngine | None = None,
        policy: ContentPolicy | None = None,
        temp_root: str | Path | None = None,
        tool_identity: str = TOOL_IDENTITY,
    ) -> ContentBuilder:
        """Allocate a workspace, reap stale siblings and open a session.

        Args:
            engine: Build engine (MSBuild if not provided)
            policy: Content policy (defaults if not provided)
            temp_root: Root for workspaces (system temp dir if not provided)
            tool_identity: Directory name shared by all processes of this tool

        Returns:
            New build session; the caller must close it

        Raises:
            WorkspaceCreationError: If the workspace cannot be created
        """
        salt = self.next_salt()
        workspace = allocate_workspace(tool_identity, salt, temp_root=temp_root)

        try:
            reaped = reap_stale_workspaces(workspace.base, skip_process_id=workspace.process_id)
            if reaped:
                logger.info(f"Reaped {len(reaped)} stale workspaces")

            builder = ContentBuilder(workspace, engine=engine, policy=policy)
        except Exception:
            logger.exception(f"Session setup failed, removing workspace {workspace.session_dir}")
            finalize_workspace(workspace)
            raise

        self._sessions[salt] = builder
        return builder

    def get_session(self, salt: int) -> ContentBuilder | None:
        """Get an open session by salt."""
        builder = self._sessions.get(salt)
        if builder is None or builder.is_closed:
            return None
        return builder

    def get_all_states(self) -> dict[int, BuildState]:
        """Get build states of all open sessions, keyed by salt."""
        return {
            salt: builder.state
            for salt, builder in list(self._sessions.items())
            if not builder.is_closed
        }

    def close_all(self) -> int:
        """Close every open session.

        Returns:
            Number of sessions closed
        """
        closed = 0
        for builder in list(self._sessions.values()):
            if not builder.is_closed:
                builder.close()
                closed += 1
        return closed

    def to_dict(self) -> dict[str, Any]:
        """Get manager status as dictionary."""
        return {
            "sessions": {
                str(salt): {
                    "state": builder.state.value,
                    "workspace": builder.workspace.to_dict(),
                    "lastResult": (
                        builder.last_result.to_dict() if builder.last_result else None
                    ),
                }
                for salt, builder in list(self._sessions.items())
                if not builder.is_closed
            }
        }
