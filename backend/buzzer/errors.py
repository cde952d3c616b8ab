from enum import Enum


class RoomError(str, Enum):
    """Expected failures of room operations.

    The value is the message shown to the player who caused it.
    """

    ROOM_NOT_FOUND = 'Room not found'
    EMPTY_NAME = 'Name cannot be empty'
    NAME_TAKEN = 'Name already taken'
    # Host-only controls used by someone else; never reported to the client
    UNAUTHORIZED = 'Only the host can do that'
    NOT_IN_ROOM = 'You are not in this room'

    @property
    def message(self) -> str:
        return self.value
