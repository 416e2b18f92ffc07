"""Adaptive training-plan engine.

Builds periodized multi-week plans from a user profile, adapts them in
response to life events, and classifies free-text coaching messages into
structured adaptation triggers.
"""
