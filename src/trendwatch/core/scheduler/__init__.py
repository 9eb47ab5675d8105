"""Scheduling primitives - clocks and cancellable timers."""

from .clock import Clock, LoopClock, ManualClock, TimerHandle

__all__ = [
    "Clock",
    "LoopClock",
    "ManualClock",
    "TimerHandle",
]
