"""
Ingestion pipeline contracts.

Shared value types passed between the reconciler, the batch writer and the
run manager. The stats object is owned by a single run and mutated only by
the sequential reconcile → persist pass, so it needs no locking.
"""
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Any, Optional


@dataclass
class ScrapeStats:
    """Per-run counters returned to the operator."""
    scraped: int = 0
    inserted: int = 0
    updated: int = 0
    duplicates: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    def summary(self) -> str:
        return (f"Scraped: {self.scraped} | Inserted: {self.inserted} | Updated: {self.updated} | "
                f"Duplicates: {self.duplicates} | Failed: {self.failed}")


@dataclass
class ExistingBusiness:
    """What the reconciler needs to know about a stored business."""
    id: str
    phone: Optional[str] = None


@dataclass
class PendingUpdate:
    """Phone backfill queued for an existing business."""
    id: str
    name: str
    phone: str
    phone_unformatted: Optional[str] = None


@dataclass
class ReconcileResult:
    """Output of one reconciliation pass."""
    to_insert: List[Dict[str, Any]] = field(default_factory=list)
    to_update: List[PendingUpdate] = field(default_factory=list)
    sample: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class RowFailure:
    """A single row the writer could not persist."""
    name: str
    error: str


def zero_stats() -> Dict[str, int]:
    return ScrapeStats().to_dict()
