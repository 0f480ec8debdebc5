"""Scalar types shared across the logic, session and messaging layers."""

# A duel decision is opaque to this service; the game rules give it meaning
# (e.g. "search" -> True, "pass" -> False).
DecisionValue = bool | int | float | str
