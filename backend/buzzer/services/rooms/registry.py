"""In-memory room registry.

Owns every live Room and performs all of its state transitions. Each
operation runs to completion while holding that room's lock, so presses,
joins, leaves and timer callbacks against one room never interleave. The
registry-wide lock only guards the code -> room map and is never held while
waiting on a room lock.
"""
import logging
import math
import re
import secrets
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from buzzer.errors import RoomError
from buzzer.models import Player, Press, Room
from .projector import RoomState, project

logger = logging.getLogger(__name__)

HOST_NAME = 'Host'

ACTION_NONE = 'none'
ACTION_ENDED = 'ended'
ACTION_RESET = 'reset'

_LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


def generate_room_code() -> str:
    """Six uppercase hex characters from three random bytes."""
    return secrets.token_bytes(3).hex().upper()


def normalize_code(code) -> str:
    return str(code or '').strip().upper()


def parse_countdown(value, default: int = 3, low: int = 1, high: int = 10) -> int:
    """Clamp ``value`` to [low, high].

    Numbers are truncated and clamped directly. Strings are read for a leading
    integer. Anything else, or a non-finite number, falls back to ``default``.
    """
    if isinstance(value, bool):
        seconds = default
    elif isinstance(value, (int, float)):
        seconds = int(value) if math.isfinite(value) else default
    else:
        match = _LEADING_INT.match(str(value))
        seconds = int(match.group(1)) if match else default
    return max(low, min(high, seconds))


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class JoinResult:
    room: Optional[Room] = None
    name: Optional[str] = None
    rejoined: bool = False
    error: Optional[RoomError] = None


@dataclass
class LeaveResult:
    room: Optional[Room] = None
    host_changed: bool = False
    old_host_id: Optional[str] = None
    new_host_id: Optional[str] = None
    room_deleted: bool = False
    error: Optional[RoomError] = None


@dataclass
class NameChangeResult:
    success: bool = False
    name: Optional[str] = None
    old_name: Optional[str] = None
    error: Optional[RoomError] = None


@dataclass
class PressResult:
    accepted: bool = False
    is_first_press: bool = False
    # The press was taken as a readiness signal
    ready_signal: bool = False
    round_ended: bool = False
    error: Optional[RoomError] = None


@dataclass
class ResetResult:
    action: str = ACTION_NONE
    countdown_seconds: Optional[int] = None
    error: Optional[RoomError] = None


@dataclass
class CountdownResult:
    success: bool = False
    seconds: Optional[int] = None
    error: Optional[RoomError] = None


def check_invariants(room: Room) -> None:
    ids = room.player_ids()
    names = room.player_names()
    assert len(ids) == len(set(ids)), f"duplicate player ids in {room.code}"
    assert len(names) == len(set(names)), f"duplicate player names in {room.code}"
    if ids:
        assert room.host_id in ids, f"host {room.host_id} is not a player of {room.code}"
    assert room.ready_players <= set(ids), f"ready set of {room.code} holds departed players"
    assert not (room.round_start_time and room.is_counting_down), f"{room.code} is both live and counting down"
    assert [p.rank for p in room.presses] == list(range(1, len(room.presses) + 1)), f"bad ranks in {room.code}"
    assert len({p.player_id for p in room.presses}) == len(room.presses), f"duplicate press in {room.code}"


class RoomRegistry:
    def __init__(self, now_ms=None, clock=None):
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()
        self._now_ms = now_ms or _wall_clock_ms
        self.clock = clock
        self.default_countdown = 3
        self.min_countdown = 1
        self.max_countdown = 10
        self.min_ready_players = 2
        self.auto_end_round = True
        self.code_attempts = 100

    def init_app(self, app, clock=None) -> None:
        cfg = app.config
        self.default_countdown = int(cfg.get('COUNTDOWN_DEFAULT_SEC', 3))
        self.min_countdown = int(cfg.get('COUNTDOWN_MIN_SEC', 1))
        self.max_countdown = int(cfg.get('COUNTDOWN_MAX_SEC', 10))
        self.min_ready_players = int(cfg.get('MIN_READY_PLAYERS', 2))
        self.auto_end_round = bool(cfg.get('AUTO_END_ROUND', True))
        self.code_attempts = int(cfg.get('ROOM_CODE_ATTEMPTS', 100))
        if clock is not None:
            self.clock = clock
        app.extensions['room_registry'] = self

    def now_ms(self) -> int:
        return self._now_ms()

    # ---- lookup ----

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def get_room(self, code) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(normalize_code(code))

    def get_state(self, code) -> Optional[RoomState]:
        with self._locked(code) as room:
            if room is None:
                return None
            return project(room)

    @contextmanager
    def _locked(self, code) -> Iterator[Optional[Room]]:
        room = self.get_room(code)
        if room is None:
            yield None
            return
        with room.lock:
            # Deleted while we waited for the lock
            yield None if room.closed else room

    def _unused_code(self) -> str:
        for _ in range(self.code_attempts):
            code = generate_room_code()
            if code not in self._rooms:
                return code
            logger.warning(f"Room code collision detected, regenerating: {code}")
        raise RuntimeError(f"No unused room code after {self.code_attempts} attempts")

    def _delete(self, room: Room) -> None:
        with self._lock:
            if self._rooms.get(room.code) is room:
                del self._rooms[room.code]
        room.closed = True
        if self.clock is not None:
            self.clock.cancel(room)
        else:
            room.countdown_timer = None
        logger.info(f"Deleted empty room {room.code}")

    def clear(self) -> None:
        """Drop every room, cancelling pending countdowns."""
        with self._lock:
            rooms = list(self._rooms.values())
            self._rooms.clear()
        for room in rooms:
            with room.lock:
                room.closed = True
                if self.clock is not None:
                    self.clock.cancel(room)

    # ---- membership ----

    def create_room(self, initiator_id: str) -> Room:
        with self._lock:
            code = self._unused_code()
            room = Room(
                code=code,
                host_id=initiator_id,
                players=[Player(id=initiator_id, name=HOST_NAME)],
                countdown_seconds=self.default_countdown,
            )
            self._rooms[code] = room
        logger.info(f"Created room {code} hosted by {initiator_id}")
        return room

    def join_room(self, code, player_id: str) -> JoinResult:
        with self._locked(code) as room:
            if room is None:
                return JoinResult(error=RoomError.ROOM_NOT_FOUND)
            existing = room.find_player(player_id)
            if existing:
                return JoinResult(room=room, name=existing.name, rejoined=True)
            name = self._next_player_name(room)
            room.players.append(Player(id=player_id, name=name))
            check_invariants(room)
            return JoinResult(room=room, name=name)

    @staticmethod
    def _next_player_name(room: Room) -> str:
        taken = set(room.player_names())
        n = 1
        while f"Player{n}" in taken:
            n += 1
        return f"Player{n}"

    def leave_room(self, code, player_id: str) -> LeaveResult:
        """Remove a player, promoting a new host or deleting the room as needed.

        A pending countdown is only cancelled when the room is deleted; if the
        host leaves mid-countdown the round still starts for the players left.
        """
        with self._locked(code) as room:
            if room is None:
                return LeaveResult(error=RoomError.ROOM_NOT_FOUND)
            if room.find_player(player_id) is None:
                return LeaveResult(room=room, error=RoomError.NOT_IN_ROOM)

            room.players = [p for p in room.players if p.id != player_id]
            room.ready_players.discard(player_id)
            was_host = room.host_id == player_id

            if not room.players:
                self._delete(room)
                return LeaveResult(host_changed=was_host, old_host_id=player_id if was_host else None,
                                   room_deleted=True)

            if was_host:
                room.host_id = room.players[0].id
                check_invariants(room)
                return LeaveResult(room=room, host_changed=True, old_host_id=player_id,
                                   new_host_id=room.host_id)

            check_invariants(room)
            return LeaveResult(room=room)

    def change_name(self, code, player_id: str, new_name) -> NameChangeResult:
        trimmed = str(new_name or '').strip()
        with self._locked(code) as room:
            if room is None:
                return NameChangeResult(error=RoomError.ROOM_NOT_FOUND)
            if not trimmed:
                return NameChangeResult(error=RoomError.EMPTY_NAME)
            if any(p.id != player_id and p.name == trimmed for p in room.players):
                return NameChangeResult(error=RoomError.NAME_TAKEN)
            player = room.find_player(player_id)
            if player is None:
                return NameChangeResult(error=RoomError.NOT_IN_ROOM)

            old_name = player.name
            player.name = trimmed
            # History follows the player id, not the old label
            if room.current_winner_id == player_id:
                room.current_winner = trimmed
            room.winners = [trimmed if wid == player_id else w for w, wid in zip(room.winners, room.winner_ids)]
            for press in room.presses:
                if press.player_id == player_id:
                    press.player_name = trimmed
            check_invariants(room)
            return NameChangeResult(success=True, name=trimmed, old_name=old_name)

    # ---- rounds ----

    @staticmethod
    def _awaiting_ready(room: Room) -> bool:
        return (room.require_ready and room.round_start_time is None
                and not room.is_counting_down and not room.has_winner)

    def record_press(self, code, player_id: str) -> PressResult:
        """Record a buzz, or a readiness signal before the first round.

        Ordering is by the server's clock at arrival. Presses landing in the
        same millisecond keep the order in which they reached the server.
        """
        with self._locked(code) as room:
            if room is None:
                return PressResult(error=RoomError.ROOM_NOT_FOUND)
            player = room.find_player(player_id)
            if player is None:
                return PressResult(error=RoomError.NOT_IN_ROOM)

            if self._awaiting_ready(room):
                room.ready_players.add(player_id)
                return PressResult(ready_signal=True)

            if not room.round_active or room.has_pressed(player_id):
                return PressResult()

            press = Press(
                player_id=player_id,
                player_name=player.name,
                press_time_ms=self._now_ms() - room.round_start_time,
                rank=len(room.presses) + 1,
            )
            room.presses.append(press)
            is_first = press.rank == 1
            if is_first:
                room.current_winner = player.name
                room.current_winner_id = player_id

            round_ended = False
            if self.auto_end_round and all(room.has_pressed(pid) for pid in room.player_ids()):
                self._end_round(room)
                round_ended = True
            check_invariants(room)
            return PressResult(accepted=True, is_first_press=is_first, round_ended=round_ended)

    @staticmethod
    def _end_round(room: Room) -> None:
        room.has_winner = True
        room.round_start_time = None
        if room.current_winner:
            room.winners.append(room.current_winner)
            room.winner_ids.append(room.current_winner_id)

    def reset_round(self, code, host_id: str) -> ResetResult:
        """End the live round, or launch a countdown for the next one.

        Launching only updates state; scheduling the countdown is up to the
        caller (see RoundClock).
        """
        with self._locked(code) as room:
            if room is None:
                return ResetResult(error=RoomError.ROOM_NOT_FOUND)
            if room.host_id != host_id:
                return ResetResult(error=RoomError.UNAUTHORIZED)

            if room.round_active:
                self._end_round(room)
                check_invariants(room)
                return ResetResult(action=ACTION_ENDED)

            if room.require_ready:
                if len(room.ready_players) < self.min_ready_players:
                    return ResetResult(action=ACTION_NONE)
                room.require_ready = False

            room.has_winner = False
            room.current_winner = None
            room.current_winner_id = None
            room.presses = []
            room.round_start_time = None
            room.is_counting_down = True
            room.countdown_seconds = room.countdown_seconds or self.default_countdown
            room.countdown_end_time = self._now_ms() + room.countdown_seconds * 1000
            check_invariants(room)
            return ResetResult(action=ACTION_RESET, countdown_seconds=room.countdown_seconds)

    def begin_round(self, room: Room) -> bool:
        """Make a counted-down round live. Returns False if it no longer applies."""
        with room.lock:
            if room.closed or self.get_room(room.code) is not room or not room.is_counting_down:
                return False
            room.is_counting_down = False
            room.countdown_end_time = None
            room.round_start_time = self._now_ms()
            check_invariants(room)
            return True

    def update_countdown(self, code, host_id: str, seconds) -> CountdownResult:
        with self._locked(code) as room:
            if room is None:
                return CountdownResult(error=RoomError.ROOM_NOT_FOUND)
            if room.host_id != host_id:
                return CountdownResult(error=RoomError.UNAUTHORIZED)
            value = parse_countdown(seconds, self.default_countdown, self.min_countdown, self.max_countdown)
            if str(value) != str(seconds).strip():
                logger.debug(f"Countdown {seconds!r} for room {room.code} clamped to {value}")
            room.countdown_seconds = value
            return CountdownResult(success=True, seconds=value)
