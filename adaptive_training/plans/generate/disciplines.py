"""Discipline allocation from goal priorities.

Each active goal adds weight (4 - priority, at least 1) to the discipline
its goal type maps to. Weekly sessions are split proportionally, leftovers
go to the top discipline, and the resulting counts are interleaved with a
smooth weighted round-robin so a heavy discipline is spread through the week.
"""

from adaptive_training.plans.types import Discipline, GoalType, UserProfile

GOAL_DISCIPLINES: dict[GoalType, Discipline] = {
    GoalType.HYROX_RACE: Discipline.HYROX,
    GoalType.RUNNING_DISTANCE: Discipline.RUNNING,
    GoalType.STRENGTH_MILESTONE: Discipline.STRENGTH,
    GoalType.GENERAL_FITNESS: Discipline.HYROX,
}

PRIORITY_BASE = 4


def discipline_priorities(profile: UserProfile) -> list[tuple[Discipline, int]]:
    """Discipline weights ordered by weight, then by goal priority.

    A profile without active goals trains Hybrid.
    """
    weights: dict[Discipline, int] = {}
    for goal in profile.active_goals():
        discipline = GOAL_DISCIPLINES[goal.goal_type]
        weights[discipline] = weights.get(discipline, 0) + max(1, PRIORITY_BASE - goal.priority)

    if not weights:
        return [(Discipline.HYBRID, 1)]

    # dict preserves insertion order, which follows goal priority
    order = list(weights)
    return sorted(weights.items(), key=lambda item: (-item[1], order.index(item[0])))


def allocate_disciplines(priorities: list[tuple[Discipline, int]], sessions: int) -> dict[Discipline, int]:
    """Split ``sessions`` across disciplines by weight.

    Args:
        priorities: Ordered (discipline, weight) pairs, top discipline first
        sessions: Number of sessions in the week

    Returns:
        Session count per discipline (only disciplines with > 0 sessions)
    """
    total_weight = sum(weight for _, weight in priorities)
    counts = {discipline: sessions * weight // total_weight for discipline, weight in priorities}
    leftover = sessions - sum(counts.values())
    top = priorities[0][0]
    counts[top] += leftover
    return {discipline: count for discipline, count in counts.items() if count > 0}


def rotate_disciplines(counts: dict[Discipline, int], week_number: int) -> list[Discipline]:
    """Interleave disciplines for one week.

    The interleaving is a smooth weighted round-robin; the starting point
    rotates with the week number so no discipline always owns the first day.
    """
    total = sum(counts.values())
    current = dict.fromkeys(counts, 0)
    sequence: list[Discipline] = []
    for _ in range(total):
        for discipline, count in counts.items():
            current[discipline] += count
        chosen = max(current, key=lambda d: current[d])
        current[chosen] -= total
        sequence.append(chosen)

    if not sequence:
        return sequence
    offset = (week_number - 1) % len(sequence)
    return sequence[offset:] + sequence[:offset]
