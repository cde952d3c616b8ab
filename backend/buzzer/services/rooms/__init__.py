"""Room domain services: registry, countdown clock and state projection.

Nothing in this package knows about sockets or HTTP. Handlers call the
registry, schedule countdowns on the clock and broadcast projected state.
"""
from .clock import RoundClock
from .projector import RoomState, project
from .registry import RoomRegistry

__all__ = ['RoomRegistry', 'RoundClock', 'RoomState', 'project']
