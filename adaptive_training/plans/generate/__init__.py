"""Periodized plan generation."""

from adaptive_training.plans.generate.generator import PlanGenerator, next_monday, select_training_days

__all__ = ["PlanGenerator", "next_monday", "select_training_days"]
