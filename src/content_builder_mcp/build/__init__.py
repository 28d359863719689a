"""Content build orchestration.

Provides XNA-style content compilation in disposable workspaces with:
- Per-session temp directories keyed by process id and session salt
- Reaping of workspaces left behind by crashed processes
- Convention-based and explicit asset registration
- Synchronous builds with per-call error collection
"""

from .cleanup import finalize_workspace, is_process_alive, reap_stale_workspaces
from .collector import ErrorCollector
from .engine import BuildEngine, BuildRequest, BuildSubmission, MSBuildEngine
from .errors import (
    BuildInfrastructureError,
    BuildInProgressError,
    BuildTimeoutError,
    CleanupError,
    ContentBuildError,
    EngineUnavailableError,
    InvalidArgumentError,
    UnknownExtensionError,
    WorkspaceClosedError,
    WorkspaceCreationError,
)
from .manager import BuildManager
from .policy import DEFAULT_IMPORTERS, ContentPolicy, ImporterInfo, resolve_importer
from .registry import AssetEntry, AssetRegistry
from .session import ContentBuilder
from .state import BuildResult, BuildState
from .workspace import Workspace, allocate_workspace

__all__ = [
    "AssetEntry",
    "AssetRegistry",
    "BuildEngine",
    "BuildInfrastructureError",
    "BuildInProgressError",
    "BuildManager",
    "BuildRequest",
    "BuildResult",
    "BuildState",
    "BuildSubmission",
    "BuildTimeoutError",
    "CleanupError",
    "ContentBuildError",
    "ContentBuilder",
    "ContentPolicy",
    "DEFAULT_IMPORTERS",
    "EngineUnavailableError",
    "ErrorCollector",
    "ImporterInfo",
    "InvalidArgumentError",
    "MSBuildEngine",
    "UnknownExtensionError",
    "Workspace",
    "WorkspaceClosedError",
    "WorkspaceCreationError",
    "allocate_workspace",
    "finalize_workspace",
    "is_process_alive",
    "reap_stale_workspaces",
    "resolve_importer",
]
