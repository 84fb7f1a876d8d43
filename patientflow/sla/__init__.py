"""
SLA monitoring package.
"""

from .monitor import (
    elapsed_minutes,
    classify_elapsed,
    evaluate_entry,
    evaluate_lane,
    mean_elapsed
)

__all__ = [
    "elapsed_minutes",
    "classify_elapsed",
    "evaluate_entry",
    "evaluate_lane",
    "mean_elapsed"
]
