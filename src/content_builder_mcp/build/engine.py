"""Content build engine interface and the MSBuild implementation.

The engine owns the actual asset transformation. This layer only hands it
a request, a diagnostic sink and waits on the returned submission.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import threading
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Protocol

from .errors import BuildInfrastructureError, EngineUnavailableError
from .policy import ContentPolicy
from .registry import AssetEntry
from .state import BuildDiagnostic, BuildErrorSeverity, parse_msbuild_line
from .workspace import Workspace

logger = logging.getLogger(__name__)

DEFAULT_MSBUILD = "msbuild"

MSBUILD_NAMESPACE = "http://schemas.microsoft.com/developer/msbuild/2003"

# Output limits (security: prevent DoS)
MAX_OUTPUT_LINE: int = 10_000  # 10KB per line


class DiagnosticSink(Protocol):
    """Receiver for diagnostics reported while a build runs."""

    def report(self, diagnostic: BuildDiagnostic) -> None: ...

    def error(self, message: str) -> None: ...


@dataclass(frozen=True)
class BuildRequest:
    """Everything the engine needs for one build pass."""

    assets: tuple[AssetEntry, ...]
    workspace: Workspace
    policy: ContentPolicy


class BuildSubmission:
    """Handle on an in-flight build.

    The engine calls complete() or fail() exactly once from whatever thread
    runs the build; wait() returns after that call is visible.
    """

    def __init__(self) -> None:
        self._done = threading.Event()
        self._succeeded = False
        self._cancel_requested = False
        self._error: BuildInfrastructureError | None = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def succeeded(self) -> bool:
        """Overall result. Only meaningful once done."""
        return self._succeeded

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def error(self) -> BuildInfrastructureError | None:
        """Failure of the build machinery itself, if any."""
        return self._error

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the build finishes.

        Returns:
            True if finished, False if timeout elapsed first
        """
        return self._done.wait(timeout)

    def cancel(self) -> None:
        """Ask the engine to stop the build."""
        self._cancel_requested = True
        self._on_cancel()

    def _on_cancel(self) -> None:
        """Engine-specific cancellation hook."""

    def complete(self, succeeded: bool) -> None:
        """Record the overall result and signal completion."""
        if self._done.is_set():
            return
        self._succeeded = succeeded
        self._done.set()

    def fail(self, error: BuildInfrastructureError) -> None:
        """Signal that the engine broke down rather than reporting asset errors."""
        if self._done.is_set():
            return
        self._error = error
        self._done.set()


class BuildEngine(ABC):
    """External asset transformation engine."""

    @abstractmethod
    def submit(self, request: BuildRequest, sink: DiagnosticSink) -> BuildSubmission:
        """Start building request, reporting diagnostics to sink.

        Raises:
            EngineUnavailableError: If the engine cannot start
        """


def render_project(request: BuildRequest) -> ET.ElementTree:
    """Render the MSBuild content project for a build request."""
    workspace = request.workspace
    root = ET.Element(
        "Project",
        {"ToolsVersion": "4.0", "DefaultTargets": "Build", "xmlns": MSBUILD_NAMESPACE},
    )

    properties = ET.SubElement(root, "PropertyGroup")
    project_properties = request.policy.project_properties(
        output_path=str(workspace.bin_dir) + os.sep,
        intermediate_path=str(workspace.intermediate_dir) + os.sep,
    )
    for key, value in project_properties.items():
        ET.SubElement(properties, key).text = value

    references = ET.SubElement(root, "ItemGroup")
    for assembly in request.policy.pipeline_assemblies:
        ET.SubElement(references, "Reference", {"Include": assembly})

    if request.assets:
        items = ET.SubElement(root, "ItemGroup")
        for asset in request.assets:
            item = ET.SubElement(items, "Compile", {"Include": asset.source_path})
            ET.SubElement(item, "Link").text = asset.link
            ET.SubElement(item, "Name").text = asset.name
            if asset.importer:
                ET.SubElement(item, "Importer").text = asset.importer
            if asset.processor:
                ET.SubElement(item, "Processor").text = asset.processor

    ET.SubElement(root, "Import", {"Project": request.policy.targets_import})

    tree = ET.ElementTree(root)
    ET.indent(tree)
    return tree


class ProcessSubmission(BuildSubmission):
    """Submission backed by an engine subprocess."""

    def __init__(self, process: subprocess.Popen[str]) -> None:
        super().__init__()
        self.process = process

    def _on_cancel(self) -> None:
        if self.process.poll() is None:
            try:
                self.process.kill()
            except OSError as e:
                logger.warning(f"Failed to kill build engine PID {self.process.pid}: {e}")


class MSBuildEngine(BuildEngine):
    """Runs the content project through the MSBuild executable.

    Usage:
        engine = MSBuildEngine()
        submission = engine.submit(request, collector)
        submission.wait()
    """

    def __init__(
        self,
        executable: str | None = None,
        extra_args: list[str] | None = None,
    ):
        """Initialize engine.

        Args:
            executable: MSBuild executable name or path
                (default: CONTENT_BUILDER_MSBUILD or "msbuild")
            extra_args: Additional MSBuild arguments
        """
        self._executable = (
            executable or os.environ.get("CONTENT_BUILDER_MSBUILD") or DEFAULT_MSBUILD
        )
        self._extra_args = list(extra_args or [])

    @property
    def executable(self) -> str:
        return self._executable

    def resolve_executable(self) -> str:
        """Find the MSBuild executable.

        Raises:
            EngineUnavailableError: If it is not installed
        """
        resolved = shutil.which(self._executable)
        if resolved is None:
            raise EngineUnavailableError(f"MSBuild executable not found: {self._executable}")
        return resolved

    def write_project(self, request: BuildRequest) -> Path:
        """Write the content project into the workspace."""
        project_path = request.workspace.project_path
        try:
            render_project(request).write(project_path, encoding="utf-8", xml_declaration=True)
        except OSError as e:
            raise EngineUnavailableError(f"Cannot write content project {project_path}: {e}") from e
        return project_path

    def get_command(self, executable: str, project_path: Path) -> list[str]:
        """Build the MSBuild command line."""
        return [
            executable,
            str(project_path),
            "/nologo",
            "/t:Build",
            "/v:minimal",
            *self._extra_args,
        ]

    def submit(self, request: BuildRequest, sink: DiagnosticSink) -> BuildSubmission:
        executable = self.resolve_executable()
        project_path = self.write_project(request)
        command = self.get_command(executable, project_path)
        logger.info(f"Running: {' '.join(command)}")

        try:
            # Never use shell=True (security)
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                cwd=request.workspace.session_dir,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise EngineUnavailableError(f"Cannot start MSBuild: {e}") from e

        submission = ProcessSubmission(process)
        thread = threading.Thread(
            target=self._pump_output,
            args=(process, sink, submission),
            name=f"content-build-{process.pid}",
            daemon=True,
        )
        thread.start()
        return submission

    def _pump_output(
        self,
        process: subprocess.Popen[str],
        sink: DiagnosticSink,
        submission: ProcessSubmission,
    ) -> None:
        """Forward engine output to the sink and signal completion.

        Asset errors go to the sink. A broken pump, or a non-zero exit that
        reported no errors, fails the submission instead.
        """
        reported_errors = 0
        exit_code = -1
        pump_error: Exception | None = None
        stream: IO[str] | None = process.stdout
        try:
            if stream is not None:
                for line in stream:
                    if len(line) > MAX_OUTPUT_LINE:
                        line = line[:MAX_OUTPUT_LINE] + "...[truncated]"
                    diagnostic = parse_msbuild_line(line)
                    if diagnostic is None:
                        continue
                    if diagnostic.severity == BuildErrorSeverity.ERROR:
                        reported_errors += 1
                    sink.report(diagnostic)
            exit_code = process.wait()
        except Exception as e:
            logger.exception("Build engine output pump failed")
            pump_error = e
        finally:
            if stream is not None:
                stream.close()

        if submission.cancel_requested:
            sink.error("Build cancelled")
            submission.complete(False)
            return

        if pump_error is not None:
            error = BuildInfrastructureError(f"Build engine failed: {pump_error}")
            error.__cause__ = pump_error
            submission.fail(error)
            return

        succeeded = exit_code == 0
        if not succeeded and reported_errors == 0:
            submission.fail(
                BuildInfrastructureError(f"MSBuild exited with code {exit_code} without reporting errors")
            )
            return
        submission.complete(succeeded)
