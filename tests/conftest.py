"""Pytest fixtures for content-builder-mcp tests."""

import os
import sys
import threading

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from content_builder_mcp.build.engine import BuildEngine, BuildSubmission  # noqa: E402
from content_builder_mcp.build.errors import (  # noqa: E402
    BuildInfrastructureError,
    EngineUnavailableError,
)
from content_builder_mcp.build.manager import BuildManager  # noqa: E402
from content_builder_mcp.build.session import ContentBuilder  # noqa: E402
from content_builder_mcp.build.state import (  # noqa: E402
    BuildDiagnostic,
    BuildErrorSeverity,
)
from content_builder_mcp.build.workspace import allocate_workspace  # noqa: E402


class FakeSubmission(BuildSubmission):
    """Submission whose cancellation wakes a hanging fake build."""

    def __init__(self, release):
        super().__init__()
        self._release = release

    def _on_cancel(self):
        self._release.set()


class FakeEngine(BuildEngine):
    """In-process stand-in for the content pipeline.

    Builds on a worker thread like the real engine. Missing source files
    and duplicate asset names fail the build; everything else is written
    to the output directory as <name>.xnb.
    """

    def __init__(self):
        self.calls = 0
        self.requests = []
        self.hang = False
        self.unavailable = False
        self.extra_errors: list[str] = []
        self.crash: str | None = None
        self.release = threading.Event()

    def submit(self, request, sink):
        if self.unavailable:
            raise EngineUnavailableError("fake engine not installed")
        self.calls += 1
        self.requests.append(request)
        submission = FakeSubmission(self.release)
        thread = threading.Thread(target=self._run, args=(request, sink, submission), daemon=True)
        thread.start()
        return submission

    def _run(self, request, sink, submission):
        if self.hang:
            self.release.wait(10)
            if submission.cancel_requested:
                sink.error("Build cancelled")
                submission.complete(False)
                return

        if self.crash:
            submission.fail(BuildInfrastructureError(self.crash))
            return

        failed = False
        seen = set()
        for asset in request.assets:
            if asset.name in seen:
                sink.report(
                    BuildDiagnostic(
                        severity=BuildErrorSeverity.ERROR,
                        code="XNA0001",
                        message=f"More than one asset is named '{asset.name}'",
                        file=asset.source_path,
                    )
                )
                failed = True
                continue
            seen.add(asset.name)
            if not os.path.exists(asset.source_path):
                sink.report(
                    BuildDiagnostic(
                        severity=BuildErrorSeverity.ERROR,
                        code="XNA0002",
                        message="Source file not found",
                        file=asset.source_path,
                    )
                )
                failed = True
                continue
            sink.report(
                BuildDiagnostic(
                    severity=BuildErrorSeverity.WARNING,
                    code="XNA0100",
                    message="Processed",
                    file=asset.source_path,
                )
            )

        for message in self.extra_errors:
            sink.error(message)
            failed = True

        if not failed:
            output_dir = request.workspace.output_dir
            output_dir.mkdir(parents=True, exist_ok=True)
            for asset in request.assets:
                target = output_dir / f"{asset.name}.xnb"
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(b"XNBw")

        submission.complete(not failed)


@pytest.fixture
def fake_engine():
    """Scripted content engine."""
    engine = FakeEngine()
    yield engine
    engine.release.set()


@pytest.fixture
def build_manager():
    """Fresh BuildManager singleton."""
    BuildManager._instance = None
    manager = BuildManager()
    yield manager
    manager.close_all()
    BuildManager._instance = None


@pytest.fixture
def builder(tmp_path, fake_engine):
    """Content builder in a workspace under tmp_path using the fake engine."""
    workspace = allocate_workspace("test.ContentBuilder", salt=1, temp_root=tmp_path / "temp")
    content_builder = ContentBuilder(workspace, engine=fake_engine)
    yield content_builder
    content_builder.close()


@pytest.fixture
def asset_files(tmp_path):
    """A few source files on disk."""
    source_dir = tmp_path / "assets"
    source_dir.mkdir()
    files = {}
    for name in ("hero.png", "level.fx", "theme.mp3"):
        path = source_dir / name
        path.write_bytes(b"data")
        files[name] = path
    return files
