"""Content build exceptions.

Asset compilation failures are not exceptions: they come back as
``BuildResult`` values. Everything here is either a caller error or an
infrastructure failure.
"""


class ContentBuildError(Exception):
    """Base exception for content build errors."""

    pass


class WorkspaceCreationError(ContentBuildError):
    """Raised when the build workspace directory cannot be created."""

    pass


class UnknownExtensionError(ContentBuildError):
    """Raised when no default importer/processor exists for an extension."""

    def __init__(self, extension: str, path: str):
        super().__init__(
            f"No default importer for extension '{extension or '<none>'}' ({path}); "
            "add the asset with an explicit importer and processor"
        )
        self.extension = extension
        self.path = path


class InvalidArgumentError(ContentBuildError, ValueError):
    """Raised when a required argument is missing or empty."""

    pass


class BuildInfrastructureError(ContentBuildError):
    """Base for failures of the build machinery itself."""

    pass


class EngineUnavailableError(BuildInfrastructureError):
    """Raised when the build engine cannot be found or started."""

    pass


class WorkspaceClosedError(BuildInfrastructureError):
    """Raised when a closed session is asked to build."""

    pass


class BuildTimeoutError(BuildInfrastructureError):
    """Raised when the engine does not finish within the timeout."""

    pass


class BuildInProgressError(BuildInfrastructureError):
    """Raised when build() is called while another build is in flight."""

    pass


class CleanupError(ContentBuildError):
    """Workspace cleanup failure. Logged, never raised to callers."""

    pass
