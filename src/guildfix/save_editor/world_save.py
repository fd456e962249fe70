"""
World save model for Level.sav.

Resolves the two parts of worldSaveData the repair works on and indexes
them:

    .worldSaveData.CharacterSaveParameterMap   character table
        key   {PlayerUId: Guid, InstanceId: Guid, DebugName: Str}
        value {RawData: byte array}
    .worldSaveData.GroupSaveDataMap            groups, keyed by group Guid
        value {GroupType: Enum, RawData: byte array, ...}

Everything is validated when WorldSave is built, so the read accessors
never fail. The only mutator is insert_character().
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from ..errors import AlreadyExists, StructureNotFound
from ..formats.gvas.base import (
    BlobNode, EnumNode, GuidNode, MapEntry, MapNode, PropertyList, StructNode,
)
from ..formats.gvas.codec import PropertyReader, PropertyWriter
from ..formats.gvas.gvas_file import GvasFile
from ..utils.binary import NULL_GUID, IoBuffer
from .guild_data import GroupGuildSave

logger = logging.getLogger(__name__)

WORLD_SAVE_DATA = ".worldSaveData"
CHARACTER_MAP_PATH = f"{WORLD_SAVE_DATA}.CharacterSaveParameterMap"
GROUP_MAP_PATH = f"{WORLD_SAVE_DATA}.GroupSaveDataMap"

GUILD_GROUP_TYPE = "EPalGroupType::Guild"


@dataclass
class CharacterRawData:
    """
    Decoded character RawData: a property list (usually a single
    SaveParameter struct), a zero word and the owning group id.
    """
    properties: PropertyList = field(default_factory=list)
    unknown: int = 0
    group_id: uuid.UUID = NULL_GUID
    trailer: bytes = b""

    @classmethod
    def from_bytes(cls, data: bytes) -> 'CharacterRawData':
        io = IoBuffer.from_bytes(data)
        properties = PropertyReader(io, {}).read_properties()
        unknown = io.read_uint32()
        group_id = io.read_guid()
        return cls(properties, unknown, group_id, io.read_bytes(io.remaining))

    def to_bytes(self) -> bytes:
        writer = PropertyWriter()
        writer.write_properties(self.properties)
        writer.io.write_uint32(self.unknown)
        writer.io.write_guid(self.group_id)
        writer.io.write_bytes(self.trailer)
        return writer.getvalue()


@dataclass
class CharacterRecord:
    """One CharacterSaveParameterMap entry."""
    key: StructNode
    value: StructNode

    @property
    def player_uid(self) -> uuid.UUID:
        return self.key["PlayerUId"].value

    @property
    def instance_id(self) -> uuid.UUID:
        return self.key["InstanceId"].value

    @property
    def raw_data(self) -> bytes:
        return self.value["RawData"].data

    def decode(self) -> CharacterRawData:
        return CharacterRawData.from_bytes(self.raw_data)

    def to_entry(self) -> MapEntry:
        return MapEntry(self.key, self.value)


@dataclass
class GuildRecord:
    """A guild-type GroupSaveDataMap entry with its decoded RawData."""
    guild_id: uuid.UUID
    data: GroupGuildSave

    @property
    def name(self) -> Optional[str]:
        return self.data.guild_name

    @property
    def members(self):
        return self.data.members


def _require_map(world: StructNode, path: str) -> MapNode:
    name = path.rsplit(".", 1)[-1]
    node = world.get(name)
    if node is None:
        raise StructureNotFound(path, "missing")
    if not isinstance(node, MapNode):
        raise StructureNotFound(path, f"expected a decoded map, found {type(node).__name__}")
    return node


def _character_from_entry(entry: MapEntry, index: int) -> CharacterRecord:
    where = f"{CHARACTER_MAP_PATH}[{index}]"
    key, value = entry.key, entry.value
    if not isinstance(key, StructNode) or not isinstance(value, StructNode):
        raise StructureNotFound(where, "key and value must be structs")
    for name in ("PlayerUId", "InstanceId"):
        if not isinstance(key.get(name), GuidNode):
            raise StructureNotFound(f"{where}.Key.{name}", "missing Guid")
    if not isinstance(value.get("RawData"), BlobNode):
        raise StructureNotFound(f"{where}.Value.RawData", "missing byte array")
    return CharacterRecord(key, value)


def _guild_from_entry(entry: MapEntry, index: int) -> Optional[GuildRecord]:
    where = f"{GROUP_MAP_PATH}[{index}]"
    if not isinstance(entry.key, GuidNode) or not isinstance(entry.value, StructNode):
        raise StructureNotFound(where, "expected Guid key and struct value")
    group_type = entry.value.get("GroupType")
    if not isinstance(group_type, EnumNode):
        raise StructureNotFound(f"{where}.Value.GroupType", "missing enum")
    if group_type.value != GUILD_GROUP_TYPE:
        return None
    raw = entry.value.get("RawData")
    if not isinstance(raw, BlobNode):
        raise StructureNotFound(f"{where}.Value.RawData", "missing byte array")
    return GuildRecord(entry.key.value, GroupGuildSave.from_bytes(raw.data))


class WorldSave:
    """
    Navigation over a decoded Level.sav.

    Args:
        container: the decoded save; insert_character() mutates its tree

    Raises:
        StructureNotFound: worldSaveData or one of the two maps is absent
            or has an unexpected shape
    """

    def __init__(self, container: GvasFile):
        self.container = container

        world = container.get("worldSaveData")
        if not isinstance(world, StructNode):
            raise StructureNotFound(WORLD_SAVE_DATA, "missing or not a struct")

        self.character_map = _require_map(world, CHARACTER_MAP_PATH)
        self.group_map = _require_map(world, GROUP_MAP_PATH)

        self._characters = [
            _character_from_entry(entry, i) for i, entry in enumerate(self.character_map)
        ]
        self._guilds = [
            guild for guild in (
                _guild_from_entry(entry, i) for i, entry in enumerate(self.group_map)
            ) if guild is not None
        ]

        self._by_player: Dict[uuid.UUID, CharacterRecord] = {}
        self._instances = set()
        for record in self._characters:
            self._index(record)

        logger.debug(
            f"World save: {len(self._characters)} characters, "
            f"{len(self._guilds)} guilds in {len(self.group_map)} groups"
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> 'WorldSave':
        return cls(GvasFile.from_bytes(data))

    def _index(self, record: CharacterRecord):
        self._instances.add(record.instance_id)
        if record.player_uid != NULL_GUID:
            self._by_player.setdefault(record.player_uid, record)

    # ─────────────────────────────────────────────────────────────
    # READ
    # ─────────────────────────────────────────────────────────────

    def guilds(self) -> List[GuildRecord]:
        """Guild records in map order; non-guild groups are skipped."""
        return list(self._guilds)

    def characters(self) -> Iterator[CharacterRecord]:
        return iter(self._characters)

    def has_player(self, player_uid: uuid.UUID) -> bool:
        """True when some table key's PlayerUId is player_uid."""
        return player_uid in self._by_player

    def has_instance(self, instance_id: uuid.UUID) -> bool:
        return instance_id in self._instances

    def find_character(self, player_uid: uuid.UUID) -> Optional[CharacterRecord]:
        return self._by_player.get(player_uid)

    def __len__(self) -> int:
        return len(self._characters)

    # ─────────────────────────────────────────────────────────────
    # WRITE
    # ─────────────────────────────────────────────────────────────

    def insert_character(self, record: CharacterRecord):
        """
        Append a character record to the table.

        Raises:
            AlreadyExists: a record with the same InstanceId, or the same
                non-null PlayerUId, is already present
        """
        if self.has_instance(record.instance_id):
            raise AlreadyExists(f"InstanceId {record.instance_id}")
        if record.player_uid != NULL_GUID and self.has_player(record.player_uid):
            raise AlreadyExists(f"PlayerUId {record.player_uid}")

        self.character_map.entries.append(record.to_entry())
        self._characters.append(record)
        self._index(record)
        logger.info(f"Inserted character {record.instance_id} for player {record.player_uid}")
