"""Player schema."""

from .player_data import PlayerData

__all__ = ["PlayerData"]
