"""Error collector - build-scoped sink for engine diagnostics."""

from __future__ import annotations

import logging
import threading

from .state import BuildDiagnostic, BuildErrorSeverity

logger = logging.getLogger(__name__)


class ErrorCollector:
    """Accumulates the errors reported during one build.

    A new collector is created for every build() call, so errors can never
    leak between builds. The engine may report from its own thread.
    """

    def __init__(self) -> None:
        self._errors: list[str] = []
        self._diagnostics: list[BuildDiagnostic] = []
        self._lock = threading.Lock()

    def report(self, diagnostic: BuildDiagnostic) -> None:
        """Record a parsed engine diagnostic. Only errors are kept."""
        if diagnostic.severity != BuildErrorSeverity.ERROR:
            logger.debug(f"Build {diagnostic.severity.value}: {diagnostic.format()}")
            return
        with self._lock:
            self._errors.append(diagnostic.format())
            self._diagnostics.append(diagnostic)

    def error(self, message: str) -> None:
        """Record an unstructured error message."""
        with self._lock:
            self._errors.append(message)

    @property
    def error_count(self) -> int:
        with self._lock:
            return len(self._errors)

    def snapshot(self) -> tuple[str, ...]:
        """Errors in report order."""
        with self._lock:
            return tuple(self._errors)

    def diagnostics(self) -> tuple[BuildDiagnostic, ...]:
        """Structured error diagnostics in report order."""
        with self._lock:
            return tuple(self._diagnostics)
