"""
Real-time vehicle change propagation.

store change feed -> ChangeNotifier -> SubscriberRegistry -> WebSocket clients
"""

from realtime.notifier import VEHICLE_CHANGE_EVENT, ChangeNotifier
from realtime.registry import SubscriberRegistry

__all__ = [
    "VEHICLE_CHANGE_EVENT",
    "ChangeNotifier",
    "SubscriberRegistry",
]
