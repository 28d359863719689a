"""Build workspace allocation.

Every session gets its own directory under the system temp location:

    <temp>/<tool identity>/<process id>/<salt>

The process id keeps concurrent copies of the tool apart, the salt keeps
sessions within one process apart. No locks are taken; uniqueness of the
(process id, salt) pair is the only concurrency control.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .errors import WorkspaceCreationError

logger = logging.getLogger(__name__)

PROJECT_FILE_NAME = "content.contentproj"


@dataclass(frozen=True)
class Workspace:
    """Directory layout of one build session. Immutable after allocation."""

    base: Path
    process_dir: Path
    session_dir: Path
    process_id: int
    salt: int

    @property
    def project_path(self) -> Path:
        """Generated content project file."""
        return self.session_dir / PROJECT_FILE_NAME

    @property
    def bin_dir(self) -> Path:
        return self.session_dir / "bin"

    @property
    def output_dir(self) -> Path:
        """Directory holding compiled artifacts after a successful build."""
        return self.bin_dir / "Content"

    @property
    def intermediate_dir(self) -> Path:
        return self.session_dir / "obj"

    def to_dict(self) -> dict[str, str | int]:
        """Convert to dictionary for JSON serialization."""
        return {
            "base": str(self.base),
            "processDir": str(self.process_dir),
            "sessionDir": str(self.session_dir),
            "outputDir": str(self.output_dir),
            "processId": self.process_id,
            "salt": self.salt,
        }


def default_temp_root() -> Path:
    """Temp root, overridable with CONTENT_BUILDER_TEMP."""
    override = os.environ.get("CONTENT_BUILDER_TEMP")
    return Path(override) if override else Path(tempfile.gettempdir())


def allocate_workspace(
    tool_identity: str,
    salt: int,
    process_id: int | None = None,
    temp_root: str | Path | None = None,
) -> Workspace:
    """Create the session directory for a new build session.

    Args:
        tool_identity: Name shared by every process running this tool
        salt: Process-local session counter value, never reused
        process_id: Owning process (defaults to the current one)
        temp_root: Root for all workspaces (defaults to the system temp dir)

    Returns:
        The allocated workspace

    Raises:
        WorkspaceCreationError: If the directory tree cannot be created
    """
    if not tool_identity:
        raise WorkspaceCreationError("Empty tool identity")

    pid = os.getpid() if process_id is None else process_id
    root = Path(temp_root) if temp_root is not None else default_temp_root()

    base = root / tool_identity
    process_dir = base / str(pid)
    session_dir = process_dir / str(salt)

    if session_dir.exists():
        # Only reachable when the OS reused our pid for a crashed process
        # whose workspace was never reaped.
        if not session_dir.is_dir():
            raise WorkspaceCreationError(f"Workspace path is not a directory: {session_dir}")
        logger.warning(f"Reusing stale workspace left by an earlier process: {session_dir}")
        _empty_directory(session_dir)

    try:
        session_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WorkspaceCreationError(f"Cannot create workspace {session_dir}: {e}") from e

    if not os.access(session_dir, os.W_OK | os.X_OK):
        raise WorkspaceCreationError(f"Workspace is not writable: {session_dir}")

    logger.info(f"Allocated build workspace: {session_dir}")
    return Workspace(
        base=base,
        process_dir=process_dir,
        session_dir=session_dir,
        process_id=pid,
        salt=salt,
    )


def _empty_directory(directory: Path) -> None:
    """Remove everything inside directory, keeping the directory itself."""
    try:
        for child in directory.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
    except OSError as e:
        raise WorkspaceCreationError(f"Cannot reset stale workspace {directory}: {e}") from e
