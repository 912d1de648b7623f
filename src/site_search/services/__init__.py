"""Background and best-effort services around the search core."""

from .analytics_service import AnalyticsRecorder
from .rebuild_scheduler import SuggestionRebuildScheduler


__all__ = [
    "AnalyticsRecorder",
    "SuggestionRebuildScheduler",
]
