"""
服务层异常
"""


class CombatStateError(Exception):
    """
    Persisted combat state contradicts itself.

    Raised for an active marker without its session/run document, a
    session whose status disagrees with the marker, or a missing player
    document. These are bugs or corrupted data, not player mistakes.
    """

    def __init__(self, message: str, player_id: str = "") -> None:
        super().__init__(message)
        self.player_id = player_id
