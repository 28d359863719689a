"""Content build session - one workspace, one asset list, one build at a time.

State machine:
IDLE → SUBMITTED → WAITING → COMPLETED
            ↑____________________|

The workspace is released by close() (or leaving the with-block). A
weakref.finalize hook is the safety net if close() is never called; stale
trees from crashed processes are reaped by the next session instead.
"""

from __future__ import annotations

import logging
import shutil
import threading
import time
import weakref
from collections.abc import Callable
from pathlib import Path

from .cleanup import finalize_workspace
from .collector import ErrorCollector
from .engine import BuildEngine, BuildRequest, BuildSubmission, MSBuildEngine
from .errors import (
    BuildInfrastructureError,
    BuildInProgressError,
    BuildTimeoutError,
    ContentBuildError,
    WorkspaceClosedError,
)
from .policy import ContentPolicy
from .registry import AssetEntry, AssetRegistry
from .state import BuildResult, BuildState
from .workspace import Workspace

logger = logging.getLogger(__name__)

# How long a timed-out or closing build gets to honour cancellation
CANCEL_GRACE_SECONDS: float = 5.0
CLOSE_TIMEOUT_SECONDS: float = 30.0


class ContentBuilder:
    """Builds content files in a private temporary workspace.

    Thread-safe for registration; only one build can run at a time.

    Usage:
        with BuildManager().create_session() as builder:
            builder.add("textures/hero.png")
            result = builder.build()
            if not result.success:
                print(result.message)
    """

    def __init__(
        self,
        workspace: Workspace,
        engine: BuildEngine | None = None,
        policy: ContentPolicy | None = None,
    ):
        """Initialize build session.

        Args:
            workspace: Allocated workspace owned by this session
            engine: Build engine (MSBuild if not provided)
            policy: Content policy (created with defaults if not provided)
        """
        self._workspace = workspace
        self._engine = engine or MSBuildEngine()
        self._policy = policy or ContentPolicy()
        self._registry = AssetRegistry()
        self._state = BuildState.IDLE
        self._build_lock = threading.Lock()
        self._current_submission: BuildSubmission | None = None
        self._last_result: BuildResult | None = None
        self._state_listeners: list[Callable[[BuildState], None]] = []
        self._closed = False
        self._finalizer = weakref.finalize(self, finalize_workspace, workspace)

    def __enter__(self) -> ContentBuilder:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ContentBuilder({self._workspace.session_dir}, state={self._state.value})"

    @property
    def state(self) -> BuildState:
        """Current build state."""
        return self._state

    @property
    def workspace(self) -> Workspace:
        return self._workspace

    @property
    def output_directory(self) -> Path:
        """Directory containing the compiled files after a successful build."""
        return self._workspace.output_dir

    @property
    def policy(self) -> ContentPolicy:
        return self._policy

    @property
    def assets(self) -> tuple[AssetEntry, ...]:
        """Registered assets in insertion order."""
        return self._registry.snapshot()

    @property
    def last_result(self) -> BuildResult | None:
        """Last build result."""
        return self._last_result

    @property
    def is_building(self) -> bool:
        """Whether a build is currently running."""
        return self._state in (BuildState.SUBMITTED, BuildState.WAITING)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def on_state_change(self, listener: Callable[[BuildState], None]) -> None:
        """Register state change listener."""
        self._state_listeners.append(listener)

    def _set_state(self, new_state: BuildState) -> None:
        """Update state and notify listeners."""
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.info(f"Build state: {old_state.value} -> {new_state.value}")
            for listener in self._state_listeners:
                try:
                    listener(new_state)
                except Exception:
                    logger.exception("State listener error")

    def add(self, path: str, name: str | None = None) -> AssetEntry:
        """Add a content file using the default importer/processor for its extension.

        Raises:
            UnknownExtensionError: If the extension has no default mapping
        """
        return self._registry.add_by_convention(path, name)

    def add_explicit(
        self,
        path: str,
        name: str | None = None,
        importer: str | None = None,
        processor: str | None = None,
    ) -> AssetEntry:
        """Add a content file. Leave importer None to let the engine
        auto-detect it, and processor None to pass data through unprocessed.
        """
        return self._registry.add_explicit(path, name, importer, processor)

    def clear(self) -> int:
        """Remove all content files from the project."""
        return self._registry.clear()

    def build(self, timeout: float | None = None) -> BuildResult:
        """Build all registered content files into the output directory.

        Blocks until the engine finishes. Asset failures are returned as a
        failed BuildResult, never raised.

        Args:
            timeout: Seconds to wait for the engine (None waits forever)

        Returns:
            Build result for this call only

        Raises:
            WorkspaceClosedError: If the session has been closed
            BuildInProgressError: If another build is running in this session
            EngineUnavailableError: If the engine cannot start
            BuildInfrastructureError: If the engine broke down mid-build
            BuildTimeoutError: If the engine did not finish in time
        """
        if self._closed:
            raise WorkspaceClosedError(f"Session is closed: {self._workspace.session_dir}")
        if not self._build_lock.acquire(blocking=False):
            raise BuildInProgressError("A build is already running in this session")

        try:
            start_time = time.perf_counter()
            collector = ErrorCollector()
            assets = self._registry.snapshot()
            request = BuildRequest(assets=assets, workspace=self._workspace, policy=self._policy)

            self._set_state(BuildState.SUBMITTED)
            submission = self._engine.submit(request, collector)
            self._current_submission = submission
            self._set_state(BuildState.WAITING)

            if not submission.wait(timeout):
                logger.warning(f"Build timeout after {timeout}s, cancelling")
                submission.cancel()
                submission.wait(CANCEL_GRACE_SECONDS)
                raise BuildTimeoutError(f"Content build did not finish within {timeout}s")

            if submission.error is not None:
                raise submission.error

            duration = (time.perf_counter() - start_time) * 1000
            if submission.succeeded:
                result = BuildResult.succeeded(
                    asset_count=len(assets),
                    output_dir=str(self.output_directory),
                    duration_ms=duration,
                )
            else:
                result = BuildResult.failure(
                    collector.snapshot(),
                    asset_count=len(assets),
                    duration_ms=duration,
                    diagnostics=collector.diagnostics(),
                )
                logger.warning(f"Content build failed: {result.error_count} errors")

            self._last_result = result
            self._set_state(BuildState.COMPLETED)
            return result

        except ContentBuildError:
            self._set_state(BuildState.IDLE)
            raise

        except Exception as e:
            self._set_state(BuildState.IDLE)
            raise BuildInfrastructureError(f"Build failed: {e}") from e

        finally:
            self._current_submission = None
            self._build_lock.release()

    def cancel(self) -> bool:
        """Cancel the current build.

        Returns:
            True if a build was cancelled
        """
        submission = self._current_submission
        if submission is None or submission.done:
            return False
        submission.cancel()
        return True

    def copy_output(self, destination: str | Path) -> list[str]:
        """Copy compiled files to destination, keeping their relative layout.

        Returns:
            Copied file paths relative to the output directory
        """
        source = self.output_directory
        if not source.is_dir():
            return []
        shutil.copytree(source, destination, dirs_exist_ok=True)
        return sorted(
            str(path.relative_to(source)) for path in source.rglob("*") if path.is_file()
        )

    def close(self) -> None:
        """Release the workspace.

        An in-flight build is cancelled and waited for first. Safe to call
        more than once.
        """
        if self._closed:
            return
        self._closed = True

        if self.cancel():
            logger.info("Cancelled in-flight build before closing session")

        acquired = self._build_lock.acquire(timeout=CLOSE_TIMEOUT_SECONDS)
        if not acquired:
            logger.warning("Build did not stop in time, removing workspace anyway")
        try:
            self._finalizer()
        finally:
            if acquired:
                self._build_lock.release()


TOOL_IDENTITY = f"{ContentBuilder.__module__}.{ContentBuilder.__qualname__}"
