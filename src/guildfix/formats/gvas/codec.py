"""
Property Tree Codec

Generic decoder/encoder for GVAS tagged property lists. Dispatch happens on
the type name read from the stream (see base.PROPERTY_TYPES); containers
recurse through PropertyReader / PropertyWriter.

Every sized body is cross-checked: a body that does not consume exactly its
declared size raises SizeMismatch, a body longer than the remaining input
raises UnexpectedEnd. Unknown types, and maps whose struct keys or values
have no type hint, are preserved as OpaqueNode so they re-encode to the
exact bytes they came from.
"""

import logging
import uuid
from typing import Dict, List, Optional

from ...errors import SizeMismatch, UnexpectedEnd
from ...utils.binary import NULL_GUID, IoBuffer
from .base import (
    FLOAT_TYPES, INT_TYPES, ArrayNode, BlobNode, BoolNode, EnumNode, ByteNode,
    FloatNode, GuidNode, IntNode, MapEntry, MapNode, Property, PropertyList,
    PropertyNode, PropertyTag, RawStructNode, StrNode, StructNode,
    get_property_class,
)
from .type_hints import NATIVE_STRUCT_SIZES, PALWORLD_TYPE_HINTS

logger = logging.getLogger(__name__)

NONE_NAME = "None"

# Element readers for arrays and maps, keyed by element type name
ELEMENT_TYPES: Dict[str, type] = {
    **{name: IntNode for name in INT_TYPES},
    **{name: FloatNode for name in FLOAT_TYPES},
    "BoolProperty": BoolNode,
    "StrProperty": StrNode,
    "NameProperty": StrNode,
    "ObjectProperty": StrNode,
    "EnumProperty": EnumNode,
}


class _Undecodable(Exception):
    """Internal signal: this container body cannot be interpreted, keep it raw."""


class PropertyReader:
    """Decode tagged property lists from an IoBuffer."""

    def __init__(self, io: IoBuffer, type_hints: Optional[Dict[str, str]] = None):
        self.io = io
        self.type_hints = PALWORLD_TYPE_HINTS if type_hints is None else type_hints

    # ─────────────────────────────────────────────────────────────
    # TAGS
    # ─────────────────────────────────────────────────────────────

    def read_properties(self, path: str = "") -> PropertyList:
        """Read tagged properties up to and including the "None" terminator."""
        properties = []
        while True:
            name = self.io.read_fstring()
            if name == NONE_NAME:
                return properties
            properties.append(self.read_property(name, path))

    def read_property(self, name: Optional[str], path: str) -> Property:
        type_name = self.io.read_fstring()
        size = self.io.read_uint32()
        array_index = self.io.read_uint32()
        tag = PropertyTag(name, type_name, size, array_index)
        prop_path = f"{path}.{name}"
        node_class = get_property_class(type_name)
        value = node_class.read_tagged(self, tag, prop_path)
        return Property(name, value, array_index, tag.guid)

    def read_property_guid(self, tag: PropertyTag):
        """Read the has-guid flag and the optional property GUID into tag."""
        if self.io.read_uint8():
            tag.guid = self.io.read_guid()

    def begin_body(self, tag: PropertyTag) -> int:
        """Check the declared body fits in the input; return its start offset."""
        if not self.io.has_bytes(tag.size):
            raise UnexpectedEnd(self.io.position, tag.size, self.io.remaining)
        return self.io.position

    def end_body(self, tag: PropertyTag, start: int):
        """Check the body consumed exactly its declared size."""
        consumed = self.io.position - start
        if consumed != tag.size:
            raise SizeMismatch(f"{tag.type_name} '{tag.name}'", tag.size, consumed, start)

    # ─────────────────────────────────────────────────────────────
    # STRUCTS
    # ─────────────────────────────────────────────────────────────

    def read_struct_value(self, struct_type: Optional[str], path: str,
                          size: Optional[int] = None,
                          struct_id: uuid.UUID = NULL_GUID) -> PropertyNode:
        """
        Read a struct body.

        Guid is decoded, other native structs are kept raw (size comes from
        the caller when known, otherwise from NATIVE_STRUCT_SIZES), anything
        else is a nested property list.
        """
        if struct_type == "Guid":
            return GuidNode(self.io.read_guid(), struct_id)
        if struct_type in NATIVE_STRUCT_SIZES:
            if size is None:
                size = NATIVE_STRUCT_SIZES[struct_type]
            return RawStructNode(struct_type, self.io.read_bytes(size), struct_id)
        return StructNode(struct_type, self.read_properties(path), struct_id)

    # ─────────────────────────────────────────────────────────────
    # ARRAYS
    # ─────────────────────────────────────────────────────────────

    def read_array_body(self, array_type: str, tag: PropertyTag, path: str) -> Optional[PropertyNode]:
        """Decode an ArrayProperty body, or None to keep it opaque."""
        count = self.io.read_uint32()

        if array_type == "ByteProperty":
            if tag.size - 4 != count:
                return None
            return BlobNode(self.io.read_bytes(count))

        if array_type == "StructProperty":
            return self._read_struct_array(count, path)

        element_class = ELEMENT_TYPES.get(array_type)
        if element_class is None:
            return None
        items = [element_class.read_element(self, array_type, path) for _ in range(count)]
        return ArrayNode(array_type, items)

    def _read_struct_array(self, count: int, path: str) -> ArrayNode:
        inner_name = self.io.read_fstring()
        inner_type = self.io.read_fstring()
        inner_size = self.io.read_uint32()
        inner_index = self.io.read_uint32()
        struct_type = self.io.read_fstring()
        struct_id = self.io.read_guid()
        inner_tag = PropertyTag(inner_name, inner_type, inner_size, inner_index)
        self.read_property_guid(inner_tag)

        start = self.begin_body(inner_tag)
        element_size = inner_size // count if count else 0
        items = [
            self.read_struct_value(struct_type, path, size=element_size)
            for _ in range(count)
        ]
        self.end_body(inner_tag, start)

        return ArrayNode(
            "StructProperty", items,
            struct_type=struct_type,
            inner_name=inner_name,
            inner_struct_id=struct_id,
            inner_array_index=inner_index,
            inner_guid=inner_tag.guid,
        )

    # ─────────────────────────────────────────────────────────────
    # MAPS
    # ─────────────────────────────────────────────────────────────

    def read_map_body(self, key_type: str, value_type: str, path: str) -> Optional[MapNode]:
        """Decode a MapProperty body, or None to keep it opaque."""
        try:
            key_reader = self._map_element_reader(key_type, f"{path}.Key")
            value_reader = self._map_element_reader(value_type, f"{path}.Value")
        except _Undecodable as e:
            logger.debug(f"Map '{path}' not decoded: {e}")
            return None

        removed = self.io.read_uint32()
        if removed:
            logger.debug(f"Map '{path}' has {removed} removed keys, keeping raw")
            return None
        count = self.io.read_uint32()
        entries = []
        for _ in range(count):
            key = key_reader(path)
            value = value_reader(path)
            entries.append(MapEntry(key, value))
        return MapNode(key_type, value_type, entries)

    def _map_element_reader(self, type_name: str, hint_path: str):
        if type_name == "StructProperty":
            struct_type = self.type_hints.get(hint_path)
            if struct_type is None:
                raise _Undecodable(f"no struct type hint for {hint_path}")
            return lambda path: self.read_struct_value(struct_type, path)
        if type_name == "ByteProperty":
            return lambda path: ByteNode.read_element(self, type_name, path)
        element_class = ELEMENT_TYPES.get(type_name)
        if element_class is None:
            raise _Undecodable(f"unsupported map element type {type_name}")
        return lambda path: element_class.read_element(self, type_name, path)


class PropertyWriter:
    """Encode property lists into an IoBuffer, computing fresh sizes."""

    def __init__(self, io: Optional[IoBuffer] = None):
        self.io = io or IoBuffer.writer()

    def write_properties(self, properties: PropertyList, path: str = ""):
        """Write tagged properties followed by the "None" terminator."""
        for prop in properties:
            self.write_property(prop, path)
        self.io.write_fstring(NONE_NAME)

    def write_property(self, prop: Property, path: str):
        node = prop.value
        self.io.write_fstring(prop.name)
        self.io.write_fstring(node.type_name)
        size_offset = self.io.reserve_uint32()
        self.io.write_uint32(prop.array_index)
        node.write_header(self)
        self.write_property_guid(prop.guid)
        start = self.io.position
        node.write_body(self, f"{path}.{prop.name}")
        self.io.patch_uint32(size_offset, self.io.position - start)

    def write_property_guid(self, guid: Optional[uuid.UUID]):
        if guid is None:
            self.io.write_uint8(0)
        else:
            self.io.write_uint8(1)
            self.io.write_guid(guid)

    def write_array_body(self, array: ArrayNode, path: str):
        self.io.write_uint32(len(array.items))
        if array.array_type != "StructProperty":
            for item in array.items:
                item.write_element(self, path)
            return

        self.io.write_fstring(array.inner_name)
        self.io.write_fstring("StructProperty")
        size_offset = self.io.reserve_uint32()
        self.io.write_uint32(array.inner_array_index)
        self.io.write_fstring(array.struct_type)
        self.io.write_guid(array.inner_struct_id)
        self.write_property_guid(array.inner_guid)
        start = self.io.position
        for item in array.items:
            item.write_element(self, path)
        self.io.patch_uint32(size_offset, self.io.position - start)

    def getvalue(self) -> bytes:
        return self.io.getvalue()


def decode_properties(data: bytes, type_hints: Optional[Dict[str, str]] = None,
                      path: str = "") -> PropertyList:
    """Decode a "None"-terminated property list that fills data exactly."""
    io = IoBuffer.from_bytes(data)
    properties = PropertyReader(io, type_hints).read_properties(path)
    if io.has_more:
        raise SizeMismatch("property list", len(data), io.position)
    return properties


def encode_properties(properties: List[Property], path: str = "") -> bytes:
    """Encode a property list, including its "None" terminator."""
    writer = PropertyWriter()
    writer.write_properties(properties, path)
    return writer.getvalue()
