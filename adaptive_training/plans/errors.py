"""Error types for the training plan engine.

Distinct error types so callers can tell bad input from concurrency
conflicts and infeasible requests:
- ValidationError: malformed input, nothing was mutated
- ConflictError: concurrent adaptation on the same plan
- NotFoundError: plan, workout or profile is absent
- InfeasibleAdaptationError: requested change cannot fit, plan untouched
- ExternalServiceError: completion service failure, absorbed by the classifier
"""


class PlanEngineError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(PlanEngineError):
    """Raised when input is malformed. No mutation is attempted."""

    def __init__(self, message: str, *, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidStatusTransitionError(ValidationError):
    """Raised when a workout status change is not allowed by the state machine.

    Adaptation logic hitting this is a programming error on the caller's side
    (e.g. asking to mark a Completed workout as Missed).
    """

    def __init__(self, workout_id: str, current: str, target: str):
        self.workout_id = workout_id
        self.current = current
        self.target = target
        super().__init__(
            f"Workout {workout_id} cannot transition from {current} to {target}",
            field="status",
        )


class InfeasiblePlanError(ValidationError):
    """Raised when a plan cannot be generated for the requested duration."""

    def __init__(self, total_weeks: int, minimum_weeks: int, message: str | None = None):
        self.total_weeks = total_weeks
        self.minimum_weeks = minimum_weeks
        super().__init__(
            message or f"Plan of {total_weeks} weeks is infeasible: phases need at least {minimum_weeks} weeks",
            field="total_weeks",
        )


class ConflictError(PlanEngineError):
    """Raised when a plan (or the profile stored with it) was modified concurrently.

    ``plan_id`` is None when the clash was on a profile row.
    """

    def __init__(self, plan_id: str | None, expected_version: int | None = None, message: str | None = None):
        self.plan_id = plan_id
        self.expected_version = expected_version
        super().__init__(message or f"Plan {plan_id} was modified concurrently (expected version {expected_version})")


class NotFoundError(PlanEngineError):
    """Raised when a plan, workout or profile does not exist."""

    def __init__(self, entity: str, entity_id: str, message: str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message or f"{entity} not found: {entity_id}")


class InfeasibleAdaptationError(PlanEngineError):
    """Raised when an adaptation cannot be applied. The plan is left unmodified."""

    def __init__(self, plan_id: str, reason: str):
        self.plan_id = plan_id
        self.reason = reason
        super().__init__(f"Adaptation infeasible for plan {plan_id}: {reason}")


class ExternalServiceError(PlanEngineError):
    """Raised when the natural-language completion service fails."""

    def __init__(self, service: str, message: str | None = None, *, attempts: int = 1):
        self.service = service
        self.attempts = attempts
        super().__init__(message or f"{service} failed after {attempts} attempt(s)")
