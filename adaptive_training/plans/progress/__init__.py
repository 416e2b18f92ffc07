"""Read-only progress statistics and the miss-threshold check."""

from adaptive_training.plans.progress.tracker import (
    CompletionStats,
    MissThresholdResult,
    ProgressReport,
    StreakInfo,
    build_progress_report,
    calculate_completion_stats,
    calculate_streaks,
    check_missed_threshold,
    completion_percentage,
    next_milestone,
)

__all__ = [
    "CompletionStats",
    "MissThresholdResult",
    "ProgressReport",
    "StreakInfo",
    "build_progress_report",
    "calculate_completion_stats",
    "calculate_streaks",
    "check_missed_threshold",
    "completion_percentage",
    "next_milestone",
]
