# price_tracker/models/run_progress.py

"""Live and final counters for a scrape run."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class RunProgress:
    """Snapshot of the current (or most recent) run's counters."""

    processed: int = 0
    total: int = 0
    active: bool = False
    succeeded: int = 0
    failed: int = 0
    in_flight: int = 0


@dataclass
class RunSummary:
    """Aggregate outcome of one completed run."""

    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    history_errors: int = 0
    alerts_sent: int = 0  # Successful sink deliveries
    failures: dict[str, int] = field(
        default_factory=lambda: dict[str, int]()
    )
    started_at: datetime | None = None
    finished_at: datetime | None = None
