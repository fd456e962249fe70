"""
Guild RawData decoder.

GroupSaveDataMap values keep the interesting part of a guild in an opaque
RawData byte array rather than in tagged properties:

    FGuid       group id
    FString     group name
    TArray      character handles   (player uid, instance id)
    uint8       organization type
    TArray      base camp ids       (FGuid)
    uint32      base camp level
    TArray      map object ids      (FGuid)
    FString     guild name
    FGuid       admin player uid
    TArray      members             (player uid, last online ticks, name)
    ...         anything after this is ignored

This layer is read-only; guild records are never written back.
"""

import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from ..utils.binary import IoBuffer


@dataclass
class CharacterHandle:
    """Guild-side link from a player to their character instance."""
    player_uid: uuid.UUID
    instance_id: uuid.UUID


@dataclass
class GuildMember:
    player_uid: uuid.UUID
    last_online_ticks: int = 0
    player_name: Optional[str] = None


@dataclass
class GroupGuildSave:
    """Decoded guild RawData."""
    group_id: uuid.UUID
    group_name: Optional[str] = None
    handles: List[CharacterHandle] = field(default_factory=list)
    organization_type: int = 0
    base_ids: List[uuid.UUID] = field(default_factory=list)
    base_camp_level: int = 0
    map_object_ids: List[uuid.UUID] = field(default_factory=list)
    guild_name: Optional[str] = None
    admin_player_uid: Optional[uuid.UUID] = None
    members: List[GuildMember] = field(default_factory=list)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'GroupGuildSave':
        io = IoBuffer.from_bytes(data)
        guild = cls(io.read_guid())
        guild.group_name = io.read_fstring()
        guild.handles = [
            CharacterHandle(io.read_guid(), io.read_guid())
            for _ in range(io.read_uint32())
        ]
        guild.organization_type = io.read_uint8()
        guild.base_ids = [io.read_guid() for _ in range(io.read_uint32())]
        guild.base_camp_level = io.read_uint32()
        guild.map_object_ids = [io.read_guid() for _ in range(io.read_uint32())]
        guild.guild_name = io.read_fstring()
        guild.admin_player_uid = io.read_guid()
        guild.members = [
            GuildMember(io.read_guid(), io.read_uint64(), io.read_fstring())
            for _ in range(io.read_uint32())
        ]
        return guild

    def to_bytes(self) -> bytes:
        """Encode in the same layout. Used to build saves for testing."""
        io = IoBuffer.writer()
        io.write_guid(self.group_id)
        io.write_fstring(self.group_name)
        io.write_uint32(len(self.handles))
        for handle in self.handles:
            io.write_guid(handle.player_uid)
            io.write_guid(handle.instance_id)
        io.write_uint8(self.organization_type)
        io.write_uint32(len(self.base_ids))
        for base_id in self.base_ids:
            io.write_guid(base_id)
        io.write_uint32(self.base_camp_level)
        io.write_uint32(len(self.map_object_ids))
        for object_id in self.map_object_ids:
            io.write_guid(object_id)
        io.write_fstring(self.guild_name)
        io.write_guid(self.admin_player_uid or uuid.UUID(int=0))
        io.write_uint32(len(self.members))
        for member in self.members:
            io.write_guid(member.player_uid)
            io.write_uint64(member.last_online_ticks)
            io.write_fstring(member.player_name)
        return io.getvalue()

    def instance_for(self, player_uid: uuid.UUID) -> Optional[uuid.UUID]:
        """Instance id from the character handle of player_uid, if any."""
        for handle in self.handles:
            if handle.player_uid == player_uid:
                return handle.instance_id
        return None
