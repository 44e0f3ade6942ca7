"""Analysis session state and the per-subject run guard."""

import enum
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from profile_analyzer.scoring.completeness import CompletenessResult


class Phase(str, enum.Enum):
    IDLE = "idle"
    SCAN = "scan"
    EXTRACT = "extract"
    CALCULATE = "calculate"
    DEEP_EXTRACT = "deep_extract"
    QUALITY_REQUEST = "quality_request"
    RECOVERY = "recovery"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class AnalysisSession:
    """State for analysing one subject, owned by the caller.

    The caller keeps the same session across triggers so the guard fields
    (``is_extracting``, ``last_started_at``) can absorb overlapping and
    duplicate runs.
    """

    subject_id: str
    force_refresh: bool = False
    is_own_profile: bool = True
    throttle_seconds: float = 5.0
    phase: Phase = Phase.IDLE
    retry_counts: dict[str, int] = field(default_factory=dict)
    last_completeness_result: Optional[CompletenessResult] = None
    is_extracting: bool = False
    last_started_at: Optional[float] = None

    def try_begin(self, clock: Callable[[], float] = time.monotonic) -> Optional[str]:
        """Claim the session for a run.

        Returns None on success, otherwise the reason the run must be skipped.
        """
        if self.is_extracting:
            return "analysis already in progress"

        now = clock()
        if self.last_started_at is not None and now - self.last_started_at < self.throttle_seconds:
            return "throttled"

        self.is_extracting = True
        self.last_started_at = now
        self.phase = Phase.IDLE
        self.retry_counts = {}
        return None

    def reset(self) -> None:
        """Release the guard; called at the end of every run whatever the outcome."""
        self.is_extracting = False
        self.force_refresh = False
