"""Pydantic models for validation results."""

from datetime import datetime

from pydantic import BaseModel, Field, computed_field


class PerformanceMetrics(BaseModel):
    """Timing and size observations from one validation run."""

    load_time_ms: float = 0.0
    size_bytes: int = 0
    response_code: int | None = None


class ValidationResult(BaseModel):
    """Tiered outcome of validating one feed. ``valid`` iff there are no errors."""

    feed_type: str
    source: str = ""
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    info: list[str] = Field(default_factory=list)
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    checked_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        return not self.errors


class SweepReport(BaseModel):
    """Results of a scheduled validation sweep, keyed by feed slug."""

    timestamp: datetime
    results: dict[str, ValidationResult] = Field(default_factory=dict)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_valid(self) -> bool:
        return all(r.valid for r in self.results.values())
