from dataclasses import dataclass
from typing import Optional, Tuple

from buzzer.models import Room


@dataclass(frozen=True)
class RoomState:
    """Client-visible snapshot of a room.

    Rebuilt from the Room after every mutation and never stored, so there is
    exactly one source of truth.
    """
    code: str
    host_id: Optional[str]
    host: Optional[str]
    has_winner: bool
    current_winner: Optional[str]
    winners: Tuple[str, ...]
    players: Tuple[str, ...]
    ready_players: Tuple[str, ...]
    all_ready: bool
    require_ready: bool
    countdown_seconds: int
    is_counting_down: bool
    countdown_end_time: Optional[int]
    round_start_time: Optional[int]

    def to_dict(self):
        return {
            'code': self.code,
            'hostId': self.host_id,
            'host': self.host,
            'hasWinner': self.has_winner,
            'currentWinner': self.current_winner,
            'winners': list(self.winners),
            'players': list(self.players),
            'readyPlayers': list(self.ready_players),
            'allReady': self.all_ready,
            'requireReady': self.require_ready,
            'countdownSeconds': self.countdown_seconds,
            'isCountingDown': self.is_counting_down,
            'countdownEndTime': self.countdown_end_time,
            'roundStartTime': self.round_start_time,
        }


def project(room: Room) -> RoomState:
    ready_ids = room.ready_players
    host = room.find_player(room.host_id) if room.host_id else None
    return RoomState(
        code=room.code,
        host_id=room.host_id,
        host=host.name if host else None,
        has_winner=room.has_winner,
        current_winner=room.current_winner,
        winners=tuple(room.winners),
        players=tuple(room.player_names()),
        # Join order, not set order
        ready_players=tuple(p.name for p in room.players if p.id in ready_ids),
        all_ready=len(room.players) > 0 and all(p.id in ready_ids for p in room.players),
        require_ready=room.require_ready,
        countdown_seconds=room.countdown_seconds,
        is_counting_down=room.is_counting_down,
        countdown_end_time=room.countdown_end_time,
        round_start_time=room.round_start_time,
    )
