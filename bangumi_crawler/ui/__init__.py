from .progress import LoggingProgressReporter, ProgressReporter, safe_report

__all__ = ["LoggingProgressReporter", "ProgressReporter", "safe_report"]
