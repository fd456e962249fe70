# Save model for Palworld worlds: Level.sav tables and player saves

from .world_save import WorldSave, CharacterRecord, CharacterRawData, GuildRecord
from .guild_data import GroupGuildSave, GuildMember, CharacterHandle
from .player_save import PlayerIdentity, read_player_identity

__all__ = [
    'WorldSave', 'CharacterRecord', 'CharacterRawData', 'GuildRecord',
    'GroupGuildSave', 'GuildMember', 'CharacterHandle',
    'PlayerIdentity', 'read_player_identity',
]
