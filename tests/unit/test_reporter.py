"""
Unit tests for bulkbench.reporter.
"""

import math
from datetime import timedelta

import pytest

from bulkbench.errors import InvalidArgument
from bulkbench.reporter import annotate, compare, format_result, report, report_outcome
from bulkbench.runner import Outcome


def ms(value: float) -> timedelta:
    return timedelta(milliseconds=value)


class TestReport:
    """Test result construction."""

    def test_report_builds_result(self):
        """Test that report keeps the duration and renders it in milliseconds."""
        result = report("Bulk insert", 50000, ms(123))
        assert result.action == "Bulk insert"
        assert result.entities == 50000
        assert result.elapsed == ms(123)
        assert result.time_elapsed == "123ms"
        assert result.elapsed_ms == 123.0

    def test_comparison_fields_empty_by_default(self):
        """Test that a plain report carries no comparison."""
        result = report("Read all", 1, ms(1))
        assert result.performance is None
        assert result.time_faster is None
        assert result.reduced_percent is None
        assert result.speedup_factor is None
        assert result.percent_reduction is None

    def test_negative_entities_rejected(self):
        """Test that a negative entity count raises InvalidArgument."""
        with pytest.raises(InvalidArgument):
            report("x", -1, ms(1))

    def test_negative_elapsed_rejected(self):
        """Test that a negative duration raises InvalidArgument."""
        with pytest.raises(InvalidArgument):
            report("x", 1, ms(-1))

    def test_zero_duration_allowed(self):
        """Test that a zero duration renders as 0ms."""
        assert report("x", 0, timedelta(0)).time_elapsed == "0ms"

    def test_report_outcome_uses_operation_label(self):
        """Test that outcomes are labelled after their operation."""
        result = report_outcome(Outcome("insert-naive", 5, ms(10)))
        assert result.action == "ORM SaveChanges insert"
        assert result.entities == 5

    def test_report_outcome_custom_label(self):
        """Test that an explicit label wins over the operation label."""
        result = report_outcome(Outcome("insert-bulk", 5, ms(10)), "Bulk insert without output mapping")
        assert result.action == "Bulk insert without output mapping"

    def test_report_outcome_unknown_operation(self):
        """Test that an unknown operation is used as its own label."""
        assert report_outcome(Outcome("custom", 1, ms(1))).action == "custom"


class TestCompare:
    """Test baseline/candidate comparison."""

    def test_speedup_and_reduction(self):
        """Test the 200ms against 50ms comparison."""
        comparison = compare(report("naive", 10, ms(200)), report("bulk", 10, ms(50)))
        assert comparison.speedup_factor == 4.0
        assert comparison.percent_reduction == 75.0
        assert comparison.time_saved == ms(150)
        assert comparison.performance == "150ms faster"
        assert comparison.time_faster == "4.0x faster"
        assert comparison.reduced_percent == "75.0%"

    def test_slower_candidate(self):
        """Test that a slower candidate reports a negative reduction."""
        comparison = compare(report("naive", 10, ms(100)), report("bulk", 10, ms(200)))
        assert comparison.speedup_factor == 0.5
        assert comparison.percent_reduction == -100.0
        assert comparison.performance == "100ms slower"

    def test_zero_baseline_rejected(self):
        """Test that a zero baseline cannot be compared against."""
        with pytest.raises(InvalidArgument):
            compare(report("naive", 10, timedelta(0)), report("bulk", 10, ms(50)))

    def test_zero_candidate_is_infinite_speedup(self):
        """Test that a zero candidate gives an infinite speed-up."""
        comparison = compare(report("naive", 10, ms(10)), report("bulk", 10, timedelta(0)))
        assert math.isinf(comparison.speedup_factor)
        assert comparison.percent_reduction == 100.0
        assert comparison.time_faster == "inf x faster"

    def test_labels_carried(self):
        """Test that the comparison names both results."""
        comparison = compare(report("naive", 1, ms(2)), report("bulk", 1, ms(1)))
        assert comparison.baseline == "naive"
        assert comparison.candidate == "bulk"


class TestAnnotate:
    """Test attaching a comparison to a result."""

    def test_annotate_returns_new_result(self):
        """Test that annotate copies the comparison onto a new result."""
        baseline = report("naive", 10, ms(200))
        candidate = report("bulk", 10, ms(50))
        annotated = annotate(candidate, compare(baseline, candidate))

        assert annotated is not candidate
        assert candidate.speedup_factor is None
        assert annotated.speedup_factor == 4.0
        assert annotated.percent_reduction == 75.0
        assert annotated.time_faster == "4.0x faster"
        assert annotated.reduced_percent == "75.0%"
        assert annotated.performance == "150ms faster"
        assert annotated.elapsed == candidate.elapsed

    def test_format_result(self):
        """Test the display block of an annotated result."""
        baseline = report("naive", 5000, ms(200))
        candidate = report("bulk", 5000, ms(50))
        text = format_result(annotate(candidate, compare(baseline, candidate)))
        assert "bulk:" in text
        assert "5,000" in text
        assert "50ms" in text
        assert "4.0x faster" in text

    def test_format_plain_result(self):
        """Test that a plain result has no comparison lines."""
        text = format_result(report("naive", 1, ms(3)))
        assert "Time faster" not in text
