import threading
from dataclasses import dataclass, field
from typing import List, Optional, Set


@dataclass
class Player:
    id: str
    name: str

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


@dataclass
class Press:
    player_id: str
    player_name: str
    press_time_ms: int
    rank: int

    def to_dict(self):
        # Player ids stay server-side; clients only ever see names
        return {
            'playerName': self.player_name,
            'pressTimeMs': self.press_time_ms,
            'rank': self.rank,
        }


@dataclass
class CountdownHandle:
    """A scheduled countdown-to-active transition for one room."""
    epoch: int
    delay: float
    canceled: bool = False


@dataclass(eq=False)
class Room:
    code: str
    host_id: Optional[str]
    players: List[Player] = field(default_factory=list)
    ready_players: Set[str] = field(default_factory=set)
    require_ready: bool = True
    round_start_time: Optional[int] = None
    presses: List[Press] = field(default_factory=list)
    has_winner: bool = False
    current_winner: Optional[str] = None
    current_winner_id: Optional[str] = None
    winners: List[str] = field(default_factory=list)
    # Parallel to winners; lets renames follow the player rather than the label
    winner_ids: List[str] = field(default_factory=list)
    countdown_seconds: int = 3
    is_counting_down: bool = False
    countdown_end_time: Optional[int] = None
    countdown_timer: Optional[CountdownHandle] = None
    # Set once the registry has dropped the room
    closed: bool = False
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def find_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def player_ids(self) -> List[str]:
        return [p.id for p in self.players]

    def player_names(self) -> List[str]:
        return [p.name for p in self.players]

    def has_pressed(self, player_id: str) -> bool:
        return any(p.player_id == player_id for p in self.presses)

    @property
    def round_active(self) -> bool:
        return self.round_start_time is not None and not self.is_counting_down and not self.has_winner
