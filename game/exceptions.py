"""Game errors.

Every error here is recoverable: the room turns a ValidationError into a
notice for the sender and the registry turns a NotFoundError into a no-op.
"""


class GameError(Exception):
    """Base class for all rule engine errors."""


class ValidationError(GameError):
    """Command rejected by the rules; `notice` is the text sent back to the sender."""

    def __init__(self, notice: str):
        self.notice = notice
        super().__init__(notice)


class NotFoundError(GameError):
    """Unknown room or player on a command."""


class RoomNotFound(NotFoundError):
    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Room {code} not found")


class PlayerNotFound(NotFoundError):
    def __init__(self, player_id: str):
        self.player_id = player_id
        super().__init__(f"Player {player_id} not found")
