"""Realtime change propagation: the notification feed and the refresh throttle."""

from shared.realtime.feed import ChangeFeed
from shared.realtime.throttle import ChangeThrottle, LatestCallback

__all__ = [
    "ChangeFeed",
    "ChangeThrottle",
    "LatestCallback",
]
