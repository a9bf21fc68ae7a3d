"""XML schema parsers for the BIND statistics channel."""

from .gen2 import fetch_gen2, parse_gen2
from .gen3 import fetch_gen3, merge_gen3, parse_gen3_group
from .models import Counter, StatsSnapshot, TaskManager, View

__all__ = [
    "Counter",
    "StatsSnapshot",
    "TaskManager",
    "View",
    "fetch_gen2",
    "fetch_gen3",
    "merge_gen3",
    "parse_gen2",
    "parse_gen3_group",
]
