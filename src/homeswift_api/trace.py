"""PipelineTrace and TraceEntry — debug execution recording."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from homeswift_api.stage import StageCategory


@dataclass(frozen=True)
class TraceEntry:
    """Single stage execution record."""

    stage_name: str
    category: StageCategory
    duration_ms: float
    outcome: Literal["OK", "SKIPPED", "SHORT_CIRCUIT", "FAILED"]
    reason: str | None = None


@dataclass
class PipelineTrace:
    """Structured record of a single pipeline run."""

    entries: list[TraceEntry] = field(default_factory=list)
    total_duration_ms: float = 0.0
    outcome: Literal["OK", "SHORT_CIRCUIT", "ABORTED", "ERROR"] = "OK"

    def describe(self) -> str:
        parts = [
            f"{entry.stage_name}={entry.outcome}({entry.duration_ms:.2f}ms)"
            for entry in self.entries
        ]
        return f"{self.outcome} {self.total_duration_ms:.2f}ms [{', '.join(parts)}]"
