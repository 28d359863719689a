"""Build state management and result types.

State machine for a content build session:
IDLE → SUBMITTED → WAITING → COMPLETED
                              |
SUBMITTED ←___________________|
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BuildState(str, Enum):
    """Build session state machine states."""

    IDLE = "idle"
    SUBMITTED = "submitted"
    WAITING = "waiting"
    COMPLETED = "completed"


class BuildErrorSeverity(str, Enum):
    """MSBuild diagnostic severity levels."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class BuildDiagnostic:
    """Parsed MSBuild diagnostic (error/warning)."""

    severity: BuildErrorSeverity
    code: str
    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    project: str | None = None

    def format(self) -> str:
        """Render as a single display line."""
        prefix = f"{self.code}: " if self.code else ""
        if not self.file:
            return f"{prefix}{self.message}"
        location = self.file
        if self.line is not None:
            location += f"({self.line},{self.column or 0})"
        return f"{location}: {prefix}{self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
        }
        if self.file:
            result["file"] = self.file
        if self.line is not None:
            result["line"] = self.line
        if self.column is not None:
            result["column"] = self.column
        if self.project:
            result["project"] = self.project
        return result


# MSBuild output patterns
# Format: path(line,col): severity code: message [project]
MSBUILD_DIAGNOSTIC_PATTERN = re.compile(
    r"^(?P<file>[^(]+)\((?P<line>\d+),(?P<col>\d+)\):\s*"
    r"(?P<severity>error|warning|info)\s+(?P<code>\w+):\s*"
    r"(?P<message>.+?)(?:\s+\[(?P<project>[^\]]+)\])?$",
    re.IGNORECASE,
)

# Content pipeline errors usually carry a file but no position:
# path : severity code: message [project]
MSBUILD_FILE_PATTERN = re.compile(
    r"^(?P<file>[^:(]+(?::\\[^:]+)?)\s*:\s*"
    r"(?P<severity>error|warning|info)\s+(?P<code>\w+):\s*"
    r"(?P<message>.+?)(?:\s+\[(?P<project>[^\]]+)\])?$",
    re.IGNORECASE,
)

# Simple format without location: severity code: message
MSBUILD_SIMPLE_PATTERN = re.compile(
    r"^(?P<severity>error|warning|info)\s+(?P<code>\w+):\s*(?P<message>.+)$",
    re.IGNORECASE,
)


def parse_msbuild_line(line: str) -> BuildDiagnostic | None:
    """Parse one line of MSBuild output.

    Returns:
        The diagnostic, or None if the line is not a diagnostic
    """
    line = line.strip()
    if not line:
        return None

    match = MSBUILD_DIAGNOSTIC_PATTERN.match(line)
    if match:
        return BuildDiagnostic(
            severity=BuildErrorSeverity(match.group("severity").lower()),
            code=match.group("code"),
            message=match.group("message"),
            file=match.group("file").strip(),
            line=int(match.group("line")),
            column=int(match.group("col")),
            project=match.group("project"),
        )

    match = MSBUILD_FILE_PATTERN.match(line)
    if match:
        return BuildDiagnostic(
            severity=BuildErrorSeverity(match.group("severity").lower()),
            code=match.group("code"),
            message=match.group("message"),
            file=match.group("file").strip(),
            project=match.group("project"),
        )

    match = MSBUILD_SIMPLE_PATTERN.match(line)
    if match:
        return BuildDiagnostic(
            severity=BuildErrorSeverity(match.group("severity").lower()),
            code=match.group("code"),
            message=match.group("message"),
        )

    return None


@dataclass(frozen=True)
class BuildResult:
    """Result of one build() call.

    Either a success with no payload or a failure carrying the error lines
    reported during exactly that call.
    """

    success: bool
    errors: tuple[str, ...] = ()
    asset_count: int = 0
    output_dir: str | None = None
    duration_ms: float = 0.0
    diagnostics: tuple[BuildDiagnostic, ...] = field(default=(), compare=False)

    @classmethod
    def succeeded(cls, **kwargs: Any) -> BuildResult:
        """Create a success result."""
        return cls(success=True, **kwargs)

    @classmethod
    def failure(cls, errors: tuple[str, ...] | list[str], **kwargs: Any) -> BuildResult:
        """Create a failure result from accumulated error lines."""
        return cls(success=False, errors=tuple(errors), **kwargs)

    @property
    def message(self) -> str | None:
        """Newline-joined error text, or None on success."""
        if self.success:
            return None
        return "\n".join(self.errors)

    @property
    def error_count(self) -> int:
        """Count of errors."""
        return len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "success": self.success,
            "assetCount": self.asset_count,
            "errorCount": self.error_count,
            "durationMs": round(self.duration_ms, 2),
        }
        if self.output_dir:
            result["outputDir"] = self.output_dir
        if not self.success:
            result["errors"] = list(self.errors)
        if self.diagnostics:
            result["diagnostics"] = [d.to_dict() for d in self.diagnostics]
        return result

    def to_summary(self) -> str:
        """Generate human-readable summary."""
        status = "[OK] Content build succeeded" if self.success else "[FAILED] Content build failed"

        parts = [
            status,
            f"  Assets: {self.asset_count}",
            f"  Duration: {self.duration_ms:.0f}ms",
        ]
        if self.output_dir:
            parts.append(f"  Output: {self.output_dir}")

        if self.error_count > 0:
            parts.append(f"  Errors: {self.error_count}")
        for error in self.errors[:5]:
            parts.append(f"    {error}")
        if self.error_count > 5:
            parts.append(f"    ... and {self.error_count - 5} more errors")

        return "\n".join(parts)
