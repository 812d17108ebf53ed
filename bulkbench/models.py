"""
Entity and result models.

``Customer`` is the SQLModel table the benchmarks write to; the remaining
models are plain pydantic models used on the HTTP surface.
"""
import math
from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel
from sqlmodel import Field as ColumnField, SQLModel


class Customer(SQLModel, table=True):
    """Synthetic record persisted by the benchmarks."""

    id: Optional[int] = ColumnField(default=None, primary_key=True)
    name: str
    description: str
    is_active: bool = True


class BulkOptions(BaseModel):
    """
    Options understood by the bulk collaborator.

    ``auto_map_output_direction`` controls whether store-assigned identifiers
    are written back onto the in-memory records after a bulk insert. Turning it
    off lets the provider use its cheapest insert path.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    auto_map_output_direction: bool = Field(
        default=True,
        description="Map store-assigned identifiers back onto the inserted records.",
    )
    batch_size: Optional[int] = Field(
        default=None, ge=1, description="Rows per statement for providers that batch inserts."
    )


def to_milliseconds(elapsed: timedelta) -> float:
    return elapsed / timedelta(milliseconds=1)


class BenchmarkResult(BaseModel):
    """Outcome of one timed operation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    action: str = Field(..., description="Human readable operation label")
    entities: int = Field(..., ge=0, description="Number of records passed to or returned from the timed call")
    elapsed: timedelta = Field(..., description="Measured duration of the persistence call")

    # Filled only by an explicit comparison against a baseline
    performance: Optional[str] = None
    time_faster: Optional[str] = None
    reduced_percent: Optional[str] = None
    speedup_factor: Optional[float] = None
    percent_reduction: Optional[float] = None

    @field_validator("elapsed")
    @classmethod
    def _non_negative(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("elapsed must be non-negative")
        return value

    @computed_field(alias="timeElapsed")
    @property
    def time_elapsed(self) -> str:
        return f"{math.floor(self.elapsed_ms)}ms"

    @computed_field(alias="elapsedMs")
    @property
    def elapsed_ms(self) -> float:
        return to_milliseconds(self.elapsed)


class Comparison(BaseModel):
    """Relative cost of a candidate result against a baseline."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    baseline: str
    candidate: str
    speedup_factor: float
    percent_reduction: float
    time_saved: timedelta

    @computed_field(alias="performance")
    @property
    def performance(self) -> str:
        saved = to_milliseconds(self.time_saved)
        if saved >= 0:
            return f"{math.floor(saved)}ms faster"
        return f"{math.floor(-saved)}ms slower"

    @computed_field(alias="timeFaster")
    @property
    def time_faster(self) -> str:
        if math.isinf(self.speedup_factor):
            return "inf x faster"
        return f"{self.speedup_factor:.1f}x faster"

    @computed_field(alias="reducedPercent")
    @property
    def reduced_percent(self) -> str:
        return f"{self.percent_reduction:.1f}%"


class CompareRequest(BaseModel):
    baseline: BenchmarkResult
    candidate: BenchmarkResult


class ErrorResponse(BaseModel):
    """Body returned for harness errors."""

    error: str = Field(..., description="Machine readable error kind")
    message: str
    operation: Optional[str] = None
    entities: Optional[int] = None
