"""Tests for the build error collector."""

import threading

from content_builder_mcp.build.collector import ErrorCollector
from content_builder_mcp.build.state import BuildDiagnostic, BuildErrorSeverity


def diagnostic(severity, message, code="X1", file=None):
    return BuildDiagnostic(severity=severity, code=code, message=message, file=file)


class TestErrorCollector:
    """Tests for ErrorCollector."""

    def test_starts_empty(self):
        """Test a new collector has no errors."""
        collector = ErrorCollector()
        assert collector.snapshot() == ()
        assert collector.error_count == 0

    def test_keeps_only_errors(self):
        """Test that warnings and info are not accumulated."""
        collector = ErrorCollector()
        collector.report(diagnostic(BuildErrorSeverity.WARNING, "resized"))
        collector.report(diagnostic(BuildErrorSeverity.INFO, "note"))
        collector.report(diagnostic(BuildErrorSeverity.ERROR, "broken", file="a.png"))

        assert collector.snapshot() == ("a.png: X1: broken",)
        assert len(collector.diagnostics()) == 1

    def test_unstructured_errors(self):
        """Test plain error messages are kept in report order."""
        collector = ErrorCollector()
        collector.report(diagnostic(BuildErrorSeverity.ERROR, "first"))
        collector.error("second")

        assert collector.snapshot() == ("X1: first", "second")

    def test_snapshot_is_a_copy(self):
        """Test later reports do not change an earlier snapshot."""
        collector = ErrorCollector()
        collector.error("one")
        snapshot = collector.snapshot()
        collector.error("two")

        assert snapshot == ("one",)

    def test_concurrent_reports(self):
        """Test appends from several engine threads are all kept."""
        collector = ErrorCollector()

        def report_many(tag):
            for i in range(100):
                collector.error(f"{tag}-{i}")

        threads = [threading.Thread(target=report_many, args=(t,)) for t in "wxyz"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        errors = collector.snapshot()
        assert len(errors) == 400
        # Per-thread order is preserved
        assert [e for e in errors if e.startswith("w-")] == [f"w-{i}" for i in range(100)]
