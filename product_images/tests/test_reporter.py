"""Tests for Reporter class."""

import io

import pytest

from product_images.job_stats import JobStats
from product_images.reconciliation_report import ReconciliationReport
from product_images.reporter import Reporter


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def reporter(output):
    return Reporter(output=output)


class TestFormatting:
    """Tests for the formatting helpers."""

    @pytest.mark.parametrize('value,expected', [
        (0, '0.0 B'),
        (512, '512.0 B'),
        (2048, '2.0 KB'),
        (5 * 1024 * 1024, '5.0 MB'),
    ])
    def test_format_bytes(self, reporter, value, expected):
        assert reporter._format_bytes(value) == expected

    @pytest.mark.parametrize('value,expected', [
        (30, '30.0 seconds'),
        (90, '1.5 minutes'),
        (7200, '2.0 hours'),
    ])
    def test_format_duration(self, reporter, value, expected):
        assert reporter._format_duration(value) == expected


class TestReportManifest:
    """Tests for Reporter.report_manifest."""

    def test_summary(self, reporter, output, sample_gc_manifest):
        reporter.report_manifest(sample_gc_manifest)
        text = output.getvalue()

        assert 'STORAGE GC MANIFEST SUMMARY' in text
        assert 'produtos/c-small.webp (2.0 KB)' in text
        assert 'Orphan candidates:    2' in text
        assert 'legacy' in text
        assert 'small' in text
        assert 'WARNING' not in text

    def test_stale_warning(self, reporter, output, stale_gc_manifest):
        reporter.report_manifest(stale_gc_manifest)

        assert 'WARNING: Manifest is older than 24 hours!' in output.getvalue()

    def test_limit(self, reporter, output, sample_gc_manifest):
        reporter.report_manifest(sample_gc_manifest, limit=1)

        assert '... and 1 more' in output.getvalue()

    def test_failures(self, reporter, output, sample_gc_manifest):
        sample_gc_manifest.failed = {'produtos/old.jpg': 'AccessDenied'}

        reporter.report_manifest(sample_gc_manifest)

        assert 'produtos/old.jpg: AccessDenied' in output.getvalue()


class TestReportReconciliation:
    """Tests for Reporter.report_reconciliation."""

    def test_dry_run(self, reporter, output):
        report = ReconciliationReport(total_storage=10, total_referenced=3, orphans=['a', 'b'])

        reporter.report_reconciliation(report)
        text = output.getvalue()

        assert '[DRY RUN]' in text
        assert 'Would remove:         2' in text

    def test_execute(self, reporter, output):
        report = ReconciliationReport(
            total_storage=10, total_referenced=3, orphans=['a', 'b'],
            removed=['a'], failed={'b': 'AccessDenied'}, bytes_freed=1024,
            dry_run=False, manifest_path='reports/m.json'
        )

        reporter.report_reconciliation(report)
        text = output.getvalue()

        assert '[DRY RUN]' not in text
        assert 'Removed:              1' in text
        assert 'Freed:                1.0 KB' in text
        assert 'reports/m.json' in text


def test_report_job(reporter, output):
    stats = JobStats(total=3, processed=1, uploads=5, bytes_uploaded=2048)
    stats.record_failure("produtos/x: unreadable")

    reporter.report_job("REPROCESS", stats)
    text = output.getvalue()

    assert 'REPROCESS' in text
    assert 'Uploads:          5 (2.0 KB)' in text
    assert 'produtos/x: unreadable' in text
