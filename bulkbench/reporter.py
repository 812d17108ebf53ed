"""
Benchmark result construction and comparison.
"""
from datetime import timedelta

from bulkbench.errors import InvalidArgument
from bulkbench.models import BenchmarkResult, Comparison
from bulkbench.runner import Outcome

ACTION_LABELS = {
    "insert-naive": "ORM SaveChanges insert",
    "insert-bulk": "Bulk insert",
    "update-naive": "ORM SaveChanges update",
    "update-bulk": "Bulk update",
    "read-all": "Read all",
    "read-filtered": "Read filtered by id",
}


def report(action: str, entities: int, elapsed: timedelta) -> BenchmarkResult:
    if entities < 0:
        raise InvalidArgument(f"entities must be non-negative, got {entities}")
    if elapsed < timedelta(0):
        raise InvalidArgument(f"elapsed must be non-negative, got {elapsed}")
    return BenchmarkResult(action=action, entities=entities, elapsed=elapsed)


def report_outcome(outcome: Outcome, label: str | None = None) -> BenchmarkResult:
    """Build a result from a runner outcome, labelled after its operation by default."""
    action = label or ACTION_LABELS.get(outcome.operation, outcome.operation)
    return report(action, outcome.entities, outcome.elapsed)


def compare(baseline: BenchmarkResult, candidate: BenchmarkResult) -> Comparison:
    """
    Compare ``candidate`` against ``baseline``.

    The speed-up factor is ``baseline / candidate`` and the reduction is the
    share of the baseline time the candidate saved, in percent.
    """
    if baseline.elapsed == timedelta(0):
        raise InvalidArgument("Cannot compare against a baseline with zero elapsed time")

    if candidate.elapsed == timedelta(0):
        speedup = float("inf")
    else:
        speedup = baseline.elapsed / candidate.elapsed

    return Comparison(
        baseline=baseline.action,
        candidate=candidate.action,
        speedup_factor=speedup,
        percent_reduction=(baseline.elapsed - candidate.elapsed) / baseline.elapsed * 100,
        time_saved=baseline.elapsed - candidate.elapsed,
    )


def annotate(candidate: BenchmarkResult, comparison: Comparison) -> BenchmarkResult:
    """Return a copy of ``candidate`` carrying the comparison fields."""
    return candidate.model_copy(
        update={
            "performance": comparison.performance,
            "time_faster": comparison.time_faster,
            "reduced_percent": comparison.reduced_percent,
            "speedup_factor": comparison.speedup_factor,
            "percent_reduction": comparison.percent_reduction,
        }
    )


def format_result(result: BenchmarkResult) -> str:
    """Format a result for display."""
    lines = [
        f"{result.action}:",
        f"- Entities: {result.entities:,}",
        f"- Time elapsed: {result.time_elapsed} ({result.elapsed_ms:.3f}ms)",
    ]
    if result.speedup_factor is not None:
        lines.extend(
            [
                f"- Performance: {result.performance}",
                f"- Time faster: {result.time_faster}",
                f"- Reduced: {result.reduced_percent}",
            ]
        )
    return "\n".join(lines)
