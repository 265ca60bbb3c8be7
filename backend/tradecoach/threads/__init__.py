"""
Periodic worker threads.

- periodic.py: PeriodicThread base (fixed interval, stop event)
- screenshot_poller.py: ScreenshotIngestionPoller
- dialogue_loop.py: CoachingDialogueLoop
- batch_scheduler.py: BatchAnalysisScheduler
"""
