"""
tests/test_progress.py - Valuation Progress Tracking Tests

Author: Actuarial Pipeline Project
License: MIT
"""

from gratuity_valuation.progress import ProgressStage, ProgressTracker


class TestProgressTracker:

    def test_updates_reach_sink(self):
        updates = []
        tracker = ProgressTracker("job-7", sink=updates.append)

        tracker.update(ProgressStage.INITIALIZATION, "start")
        tracker.complete()

        assert [u.percentage for u in updates] == [5, 100]
        assert updates[-1].completed and not updates[-1].error
        assert updates[0].to_dict()['stage'] == 'initialization'

    def test_failure(self):
        tracker = ProgressTracker("job-8")

        update = tracker.fail("boom")

        assert update.error and update.percentage == 0
        assert tracker.last is update
