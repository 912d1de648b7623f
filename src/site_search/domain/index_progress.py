"""Progress and status value objects for long-running index builds."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True, frozen=True)
class BuildProgress:
    """Snapshot emitted after each item of a full rebuild."""

    processed: int
    total: int
    indexed: int = 0
    skipped: int = 0
    failed: int = 0
    current_id: int | None = None

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return round(self.processed / self.total * 100)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "total": self.total,
            "indexed": self.indexed,
            "skipped": self.skipped,
            "failed": self.failed,
            "progress": self.percent,
        }


@dataclass(frozen=True)
class BuildResult:
    """Outcome of a full rebuild."""

    total: int
    indexed: int
    skipped: int
    failed: int
    errors: tuple[str, ...] = ()
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return self.indexed + self.skipped + self.failed

    @property
    def success(self) -> bool:
        return self.failed == 0 and not self.cancelled


@dataclass(frozen=True)
class IndexStatus:
    """State of the index, the suggestion snapshot and the rebuild schedule."""

    total_entries: int
    entries_by_type: dict[str, int] = field(default_factory=dict)
    last_indexed_at: datetime | None = None
    suggestion_count: int = 0
    next_suggestion_rebuild_at: datetime | None = None

    def summary(self) -> str:
        """Render a human readable multi-line summary."""
        lines = [f"Indexed entries: {self.total_entries}"]
        for content_type, count in sorted(self.entries_by_type.items()):
            lines.append(f"  {content_type}: {count}")
        if self.last_indexed_at is not None:
            lines.append(f"Last indexed at: {self.last_indexed_at.isoformat()}")
        else:
            lines.append("Last indexed at: never")
        lines.append(f"Suggestion terms: {self.suggestion_count}")
        if self.next_suggestion_rebuild_at is not None:
            lines.append(f"Next suggestion rebuild: {self.next_suggestion_rebuild_at.isoformat()}")
        else:
            lines.append("Next suggestion rebuild: not scheduled")
        return "\n".join(lines)
