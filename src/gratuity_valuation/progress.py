"""
gratuity_valuation/progress.py - Valuation Progress Notifications

Coarse progress milestones for a valuation job. Updates are pushed to an
optional sink (any callable taking a ProgressUpdate) and always logged.

Author: Actuarial Pipeline Project
License: MIT
"""

import time
from typing import Callable, Optional
from dataclasses import dataclass, field, asdict
from enum import Enum
import logging

logger = logging.getLogger(__name__)


class ProgressStage(Enum):
    """Valuation milestones and their fixed percentages."""
    INITIALIZATION = ("initialization", 5)
    DATA_PREPARATION = ("data_preparation", 15)
    CALCULATION_START = ("calculation_start", 25)
    CALCULATION_MIDPOINT = ("calculation_midpoint", 60)
    FINALIZATION = ("finalization", 90)
    COMPLETED = ("completed", 100)
    ERROR = ("error", 0)

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def percentage(self) -> int:
        return self.value[1]


@dataclass
class ProgressUpdate:
    """A single progress notification."""
    job_id: str
    stage: str
    percentage: int
    message: str = ""
    timestamp: float = field(default_factory=time.time)
    completed: bool = False
    error: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


ProgressSink = Callable[[ProgressUpdate], None]


class ProgressTracker:
    """
    Reports milestones for one valuation job.

    Example:
        tracker = ProgressTracker("job-42", sink=updates.append)
        tracker.update(ProgressStage.CALCULATION_START)
        tracker.complete()
    """

    def __init__(self, job_id: str = "", sink: Optional[ProgressSink] = None):
        self.job_id = job_id
        self.sink = sink
        self.last: Optional[ProgressUpdate] = None

    def update(self, stage: ProgressStage, message: str = "") -> ProgressUpdate:
        return self._emit(ProgressUpdate(
            job_id=self.job_id,
            stage=stage.label,
            percentage=stage.percentage,
            message=message,
            completed=stage is ProgressStage.COMPLETED,
            error=stage is ProgressStage.ERROR,
        ))

    def complete(self, message: str = "Valuation completed successfully") -> ProgressUpdate:
        return self.update(ProgressStage.COMPLETED, message)

    def fail(self, message: str) -> ProgressUpdate:
        logger.error(f"Valuation job {self.job_id or '-'} failed: {message}")
        return self.update(ProgressStage.ERROR, message)

    def _emit(self, update: ProgressUpdate) -> ProgressUpdate:
        self.last = update
        logger.debug(f"Progress for job {update.job_id or '-'}: "
                     f"{update.percentage}% ({update.stage}) {update.message}")
        if self.sink is not None:
            self.sink(update)
        return update
