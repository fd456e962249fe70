"""
Character Synthesizer

Builds a fresh level-1 player character record from a template. The
template is the property list that goes into the record's RawData, stored
as JSON so it can be replaced without touching code. Each JSON entry is

    {"name": ..., "type": "<Unreal property type>", ...type fields}

with type fields
    value                       scalars, Guid structs (canonical UUID string)
    enum_type                   EnumProperty, ByteProperty
    struct_type, fields         StructProperty with nested properties
    struct_type, data           native struct as hex bytes (Vector, LinearColor)
    array_type, items           ArrayProperty; struct arrays also take
                                struct_type and inner_name, items are field lists
    array_type, data            ArrayProperty of ByteProperty as hex bytes

Only the identity fields are substituted: the key's PlayerUId and
InstanceId, the owning guild in RawData and the NickName.
"""

import copy
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import StructureNotFound
from ..formats.gvas.base import (
    FLOAT_TYPES, INT_TYPES, ArrayNode, BlobNode, BoolNode, ByteNode, EnumNode,
    FloatNode, GuidNode, IntNode, Property, PropertyList, PropertyNode,
    RawStructNode, StrNode, StructNode, get_property,
)
from ..formats.gvas.type_hints import STRUCT
from ..save_editor.world_save import CharacterRawData, CharacterRecord

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent.parent / "data" / "character_template.json"

SAVE_PARAMETER = "SaveParameter"
STRING_TYPES = ("StrProperty", "NameProperty", "ObjectProperty")


# ═══════════════════════════════════════════════════════════════════════════════
# TEMPLATE LOADING
# ═══════════════════════════════════════════════════════════════════════════════

def _struct_from_json(struct_type: str, desc: Dict[str, Any]) -> PropertyNode:
    if struct_type == "Guid":
        return GuidNode(uuid.UUID(desc["value"]))
    if "data" in desc:
        return RawStructNode(struct_type, bytes.fromhex(desc["data"]))
    return StructNode(struct_type, properties_from_json(desc.get("fields", [])))


def _element_from_json(array: ArrayNode, item: Any) -> PropertyNode:
    array_type = array.array_type
    if array_type == "StructProperty":
        if array.struct_type == "Guid":
            return GuidNode(uuid.UUID(item))
        return StructNode(array.struct_type, properties_from_json(item))
    if array_type in INT_TYPES:
        return IntNode(int(item), array_type)
    if array_type in FLOAT_TYPES:
        return FloatNode(float(item), array_type)
    if array_type == "BoolProperty":
        return BoolNode(bool(item))
    if array_type in STRING_TYPES:
        return StrNode(item, array_type)
    if array_type == "EnumProperty":
        return EnumNode(item)
    raise ValueError(f"Unsupported array element type in template: {array_type}")


def node_from_json(desc: Dict[str, Any]) -> PropertyNode:
    """Build one node from its JSON description."""
    type_name = desc["type"]
    value = desc.get("value")

    if type_name in INT_TYPES:
        return IntNode(int(value), type_name)
    if type_name in FLOAT_TYPES:
        return FloatNode(float(value), type_name)
    if type_name == "BoolProperty":
        return BoolNode(bool(value))
    if type_name in STRING_TYPES:
        return StrNode(value, type_name)
    if type_name == "EnumProperty":
        return EnumNode(value, desc["enum_type"])
    if type_name == "ByteProperty":
        return ByteNode(value, desc.get("enum_type", "None"))
    if type_name == "StructProperty":
        return _struct_from_json(desc["struct_type"], desc)
    if type_name == "ArrayProperty":
        if desc["array_type"] == "ByteProperty":
            return BlobNode(bytes.fromhex(desc.get("data", "")))
        array = ArrayNode(
            desc["array_type"],
            struct_type=desc.get("struct_type"),
            inner_name=desc.get("inner_name", desc.get("name")),
        )
        array.items = [_element_from_json(array, item) for item in desc.get("items", [])]
        return array
    raise ValueError(f"Unsupported property type in template: {type_name}")


def properties_from_json(entries: List[Dict[str, Any]]) -> PropertyList:
    return [
        Property(entry["name"], node_from_json(entry), entry.get("array_index", 0))
        for entry in entries
    ]


def load_template(path=None) -> PropertyList:
    """
    Load a character template.

    Args:
        path: JSON file; the bundled level-1 player template when None

    Raises:
        StructureNotFound: the template has no SaveParameter struct
    """
    path = Path(path) if path else DEFAULT_TEMPLATE_PATH
    with open(path, "r", encoding="utf-8") as f:
        template = properties_from_json(json.load(f))

    save_parameter = get_property(template, SAVE_PARAMETER)
    if save_parameter is None or not isinstance(save_parameter.value, StructNode):
        raise StructureNotFound(f"{path}:{SAVE_PARAMETER}", "template must define a struct")
    logger.debug(f"Loaded character template {path} ({len(save_parameter.value.fields)} fields)")
    return template


# ═══════════════════════════════════════════════════════════════════════════════
# SYNTHESIS
# ═══════════════════════════════════════════════════════════════════════════════

def build_key(player_uid: uuid.UUID, instance_id: uuid.UUID) -> StructNode:
    """CharacterSaveParameterMap key for a player character."""
    return StructNode(STRUCT, [
        Property("PlayerUId", GuidNode(player_uid)),
        Property("InstanceId", GuidNode(instance_id)),
        Property("DebugName", StrNode(None)),
    ])


def _set_nickname(save_parameter: StructNode, nickname: str):
    prop = get_property(save_parameter.fields, "NickName")
    if prop is not None:
        prop.value = StrNode(nickname)
    else:
        save_parameter.fields.append(Property("NickName", StrNode(nickname)))


class CharacterSynthesizer:
    """
    Creates CharacterRecords from a template.

    Args:
        template: property list for RawData; loaded from
            DEFAULT_TEMPLATE_PATH when None
    """

    def __init__(self, template: Optional[PropertyList] = None):
        self.template = template if template is not None else load_template()

    def synthesize(self, player_uid: uuid.UUID, guild_id: uuid.UUID,
                   instance_id: uuid.UUID, nickname: Optional[str] = None) -> CharacterRecord:
        """
        Build a new character for player_uid.

        Args:
            player_uid: owning player
            guild_id: guild GUID written as the record's group
            instance_id: character GUID; becomes the key's InstanceId
            nickname: NickName to set, template value kept when None

        Returns:
            CharacterRecord ready for WorldSave.insert_character()
        """
        properties = copy.deepcopy(self.template)
        if nickname:
            save_parameter = get_property(properties, SAVE_PARAMETER)
            _set_nickname(save_parameter.value, nickname)

        raw = CharacterRawData(properties, 0, guild_id)
        value = StructNode(STRUCT, [Property("RawData", BlobNode(raw.to_bytes()))])
        logger.debug(f"Synthesized character {instance_id} for player {player_uid} in guild {guild_id}")
        return CharacterRecord(build_key(player_uid, instance_id), value)


_default_synthesizer: Optional[CharacterSynthesizer] = None


def synthesize(player_uid: uuid.UUID, guild_id: uuid.UUID, instance_id: uuid.UUID,
               nickname: Optional[str] = None) -> CharacterRecord:
    """synthesize() with the bundled template."""
    global _default_synthesizer
    if _default_synthesizer is None:
        _default_synthesizer = CharacterSynthesizer()
    return _default_synthesizer.synthesize(player_uid, guild_id, instance_id, nickname)
