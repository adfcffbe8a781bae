"""
Broker for live message fan-out.

Invariants:
    - Each subscription owns an independent bounded queue
    - A stalled subscriber never delays delivery to others
    - The broker depends on nothing from the message log but the Message type
"""

from .broker import Broker
from .subscription import Subscription

__all__ = [
    "Broker",
    "Subscription",
]
