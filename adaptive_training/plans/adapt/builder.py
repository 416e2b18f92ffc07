"""AdaptationRecordBuilder - collects changes and produces the PlanAdaptation record.

Used by adaptation policies to record every field change, the weeks that
need persisting, and non-blocking warnings. The engine persists the touched
weeks and the finalized record in the same transaction.
"""

from datetime import datetime

from adaptive_training.plans.types import AdaptationTrigger, AdaptationType, PlanAdaptation, TrainingPlan, TrainingWeek

MAX_DESCRIBED_CHANGES = 25


class AdaptationRecordBuilder:
    """Builder for PlanAdaptation records.

    Usage:
        builder = AdaptationRecordBuilder(plan_id=plan.id, trigger=..., adaptation_type=..., applied_at=now)
        builder.add_change(week=week, workout_id="w1", field="status", old="NotStarted", new="Missed")
        builder.set_summary("Marked 1 workout as missed")
        record = builder.finalize(record_id)
    """

    def __init__(
        self,
        *,
        plan_id: str,
        trigger: AdaptationTrigger,
        adaptation_type: AdaptationType,
        applied_at: datetime,
    ) -> None:
        self.plan_id = plan_id
        self.trigger = trigger
        self.adaptation_type = adaptation_type
        self.applied_at = applied_at
        self.summary = ""
        self.changes: list[str] = []
        self.warnings: list[str] = []
        self.dropped_week_ids: list[str] = []
        self._touched_week_ids: dict[str, None] = {}

    def add_change(
        self,
        *,
        week: TrainingWeek,
        field: str,
        workout_id: str | None = None,
        old: str | int | None = None,
        new: str | int | None = None,
    ) -> None:
        """Record a field change and mark its week for persistence.

        Args:
            week: Week owning the change
            field: Name of the field that changed
            workout_id: Optional workout id (None for week-level changes)
            old: Old value
            new: New value
        """
        target = f"workout {workout_id}" if workout_id else "week"
        self.changes.append(f"week {week.week_number} {target}: {field} {old} -> {new}")
        self.touch_week(week)

    def touch_week(self, week: TrainingWeek) -> None:
        self._touched_week_ids[week.id] = None

    def drop_week(self, week: TrainingWeek) -> None:
        self.dropped_week_ids.append(week.id)
        self._touched_week_ids.pop(week.id, None)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def set_summary(self, summary: str) -> None:
        self.summary = summary

    def touched_weeks(self, plan: TrainingPlan) -> list[TrainingWeek]:
        """Weeks of ``plan`` that were changed, in plan order."""
        return [week for week in plan.weeks if week.id in self._touched_week_ids]

    def describe(self) -> str:
        lines = [self.summary or f"{self.adaptation_type} adaptation"]
        lines.extend(f"- {change}" for change in self.changes[:MAX_DESCRIBED_CHANGES])
        if len(self.changes) > MAX_DESCRIBED_CHANGES:
            lines.append(f"- ... and {len(self.changes) - MAX_DESCRIBED_CHANGES} more change(s)")
        lines.extend(f"! {warning}" for warning in self.warnings)
        return "\n".join(lines)

    def finalize(self, record_id: str) -> PlanAdaptation:
        """Finalize and return the immutable adaptation record."""
        return PlanAdaptation(
            id=record_id,
            plan_id=self.plan_id,
            trigger=self.trigger,
            adaptation_type=self.adaptation_type,
            applied_at=self.applied_at,
            description=self.describe(),
        )
