"""
GVAS Property Nodes

Tagged-variant tree model for Unreal Engine SaveGame properties. Each node
knows its Unreal type name and carries every piece of type metadata it needs
to write itself back without a schema. Reading and writing of the nested
containers is driven by PropertyReader / PropertyWriter in codec.py.

Tag layout of one property inside a property list:

    FString name            ("None" terminates the list)
    FString type            e.g. "IntProperty"
    uint32  size            bytes in the body
    uint32  array_index
    ...     type header     struct type, array inner type, map key/value types
    uint8   has_guid        followed by a 16-byte GUID when set
    ...     body            exactly `size` bytes
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Dict, Iterator, List, Optional, Tuple, Union

from ...utils.binary import NULL_GUID

if TYPE_CHECKING:
    from .codec import PropertyReader, PropertyWriter

logger = logging.getLogger(__name__)


@dataclass
class PropertyTag:
    """Header fields of one tagged property, as read from the stream."""
    name: str
    type_name: str
    size: int = 0
    array_index: int = 0
    guid: Optional[uuid.UUID] = None


class PropertyNode:
    """Base class for every value in the property tree."""

    type_name: ClassVar[str] = ""

    @classmethod
    def read_tagged(cls, reader: 'PropertyReader', tag: PropertyTag, path: str) -> 'PropertyNode':
        """Read type header, optional GUID and body of a tagged property."""
        raise NotImplementedError(f"{cls.__name__} cannot appear as a tagged property")

    @classmethod
    def read_element(cls, reader: 'PropertyReader', type_name: str, path: str) -> 'PropertyNode':
        """Read one untagged value (array element or map key/value)."""
        raise NotImplementedError(f"{type_name} cannot appear inside arrays or maps")

    def write_header(self, writer: 'PropertyWriter'):
        """Write the type-specific tag fields that precede the GUID flag."""

    def write_body(self, writer: 'PropertyWriter', path: str):
        """Write the sized body of a tagged property."""
        raise NotImplementedError

    def write_element(self, writer: 'PropertyWriter', path: str):
        """Write this value untagged."""
        self.write_body(writer, path)


@dataclass
class Property:
    """One named entry of a property list."""
    name: str
    value: PropertyNode
    array_index: int = 0
    guid: Optional[uuid.UUID] = None

    @property
    def type_name(self) -> str:
        return self.value.type_name


PropertyList = List[Property]


def get_property(properties: PropertyList, name: str) -> Optional[Property]:
    """First property called name, or None."""
    for prop in properties:
        if prop.name == name:
            return prop
    return None


# Property type registry - maps Unreal type names to node classes
PROPERTY_TYPES: Dict[str, type] = {}


def register_property(*type_names: str):
    """Decorator to register a node class for one or more type names."""
    def decorator(cls):
        for type_name in type_names:
            PROPERTY_TYPES[type_name] = cls
        return cls
    return decorator


def get_property_class(type_name: str) -> type:
    """Get node class for a type name, or OpaqueNode if not found."""
    return PROPERTY_TYPES.get(type_name, OpaqueNode)


# ═══════════════════════════════════════════════════════════════════════════════
# SCALARS
# ═══════════════════════════════════════════════════════════════════════════════

INT_TYPES = {
    "Int8Property": ("read_int8", "write_int8"),
    "Int16Property": ("read_int16", "write_int16"),
    "IntProperty": ("read_int32", "write_int32"),
    "Int64Property": ("read_int64", "write_int64"),
    "UInt16Property": ("read_uint16", "write_uint16"),
    "UInt32Property": ("read_uint32", "write_uint32"),
    "UInt64Property": ("read_uint64", "write_uint64"),
}

FLOAT_TYPES = {
    "FloatProperty": ("read_float", "write_float"),
    "DoubleProperty": ("read_double", "write_double"),
}


@register_property(*INT_TYPES)
@dataclass
class IntNode(PropertyNode):
    value: int = 0
    type_name: str = "IntProperty"

    @classmethod
    def read_tagged(cls, reader, tag, path):
        reader.read_property_guid(tag)
        start = reader.begin_body(tag)
        node = cls.read_element(reader, tag.type_name, path)
        reader.end_body(tag, start)
        return node

    @classmethod
    def read_element(cls, reader, type_name, path):
        read_name, _ = INT_TYPES[type_name]
        return cls(getattr(reader.io, read_name)(), type_name)

    def write_body(self, writer, path):
        _, write_name = INT_TYPES[self.type_name]
        getattr(writer.io, write_name)(self.value)


@register_property(*FLOAT_TYPES)
@dataclass
class FloatNode(PropertyNode):
    value: float = 0.0
    type_name: str = "FloatProperty"

    @classmethod
    def read_tagged(cls, reader, tag, path):
        reader.read_property_guid(tag)
        start = reader.begin_body(tag)
        node = cls.read_element(reader, tag.type_name, path)
        reader.end_body(tag, start)
        return node

    @classmethod
    def read_element(cls, reader, type_name, path):
        read_name, _ = FLOAT_TYPES[type_name]
        return cls(getattr(reader.io, read_name)(), type_name)

    def write_body(self, writer, path):
        _, write_name = FLOAT_TYPES[self.type_name]
        getattr(writer.io, write_name)(self.value)


@register_property("BoolProperty")
@dataclass
class BoolNode(PropertyNode):
    """Bool keeps its value in the tag header; the body is always empty."""
    value: bool = False
    type_name: ClassVar[str] = "BoolProperty"

    @classmethod
    def read_tagged(cls, reader, tag, path):
        value = reader.io.read_uint8()
        reader.read_property_guid(tag)
        start = reader.begin_body(tag)
        reader.end_body(tag, start)
        return cls(bool(value))

    @classmethod
    def read_element(cls, reader, type_name, path):
        return cls(bool(reader.io.read_uint8()))

    def write_header(self, writer):
        writer.io.write_uint8(1 if self.value else 0)

    def write_body(self, writer, path):
        pass

    def write_element(self, writer, path):
        writer.io.write_uint8(1 if self.value else 0)


@register_property("StrProperty", "NameProperty", "ObjectProperty")
@dataclass
class StrNode(PropertyNode):
    """String-valued property. None is the zero-length (null) FString."""
    value: Optional[str] = None
    type_name: str = "StrProperty"

    @classmethod
    def read_tagged(cls, reader, tag, path):
        reader.read_property_guid(tag)
        start = reader.begin_body(tag)
        node = cls(reader.io.read_fstring(), tag.type_name)
        reader.end_body(tag, start)
        return node

    @classmethod
    def read_element(cls, reader, type_name, path):
        return cls(reader.io.read_fstring(), type_name)

    def write_body(self, writer, path):
        writer.io.write_fstring(self.value)


@register_property("EnumProperty")
@dataclass
class EnumNode(PropertyNode):
    """Enum value stored by name, e.g. "EPalGroupType::Guild"."""
    value: Optional[str] = None
    enum_type: Optional[str] = None
    type_name: ClassVar[str] = "EnumProperty"

    @classmethod
    def read_tagged(cls, reader, tag, path):
        enum_type = reader.io.read_fstring()
        reader.read_property_guid(tag)
        start = reader.begin_body(tag)
        node = cls(reader.io.read_fstring(), enum_type)
        reader.end_body(tag, start)
        return node

    @classmethod
    def read_element(cls, reader, type_name, path):
        return cls(reader.io.read_fstring())

    def write_header(self, writer):
        writer.io.write_fstring(self.enum_type)

    def write_body(self, writer, path):
        writer.io.write_fstring(self.value)


@register_property("ByteProperty")
@dataclass
class ByteNode(PropertyNode):
    """
    Scalar ByteProperty. With enum_type "None" the body is one raw byte,
    otherwise it is the enum value name.
    """
    value: Union[int, str, None] = 0
    enum_type: Optional[str] = "None"
    type_name: ClassVar[str] = "ByteProperty"

    @classmethod
    def read_tagged(cls, reader, tag, path):
        enum_type = reader.io.read_fstring()
        reader.read_property_guid(tag)
        start = reader.begin_body(tag)
        if tag.size == 1:
            value = reader.io.read_uint8()
        else:
            value = reader.io.read_fstring()
        reader.end_body(tag, start)
        return cls(value, enum_type)

    @classmethod
    def read_element(cls, reader, type_name, path):
        return cls(reader.io.read_uint8(), None)

    def write_header(self, writer):
        writer.io.write_fstring(self.enum_type)

    def write_body(self, writer, path):
        if isinstance(self.value, int):
            writer.io.write_uint8(self.value)
        else:
            writer.io.write_fstring(self.value)


# ═══════════════════════════════════════════════════════════════════════════════
# STRUCTS
# ═══════════════════════════════════════════════════════════════════════════════

class StructValue(PropertyNode):
    """Common base of the three struct shapes."""
    type_name: ClassVar[str] = "StructProperty"
    struct_type: str
    struct_id: uuid.UUID

    @classmethod
    def read_tagged(cls, reader, tag, path):
        struct_type = reader.io.read_fstring()
        struct_id = reader.io.read_guid()
        reader.read_property_guid(tag)
        start = reader.begin_body(tag)
        node = reader.read_struct_value(struct_type, path, size=tag.size, struct_id=struct_id)
        reader.end_body(tag, start)
        return node

    @classmethod
    def read_element(cls, reader, type_name, path):
        raise NotImplementedError("struct elements are read through PropertyReader.read_struct_value")

    def write_header(self, writer):
        writer.io.write_fstring(self.struct_type)
        writer.io.write_guid(self.struct_id)


register_property("StructProperty")(StructValue)


@dataclass
class GuidNode(StructValue):
    value: uuid.UUID = NULL_GUID
    struct_id: uuid.UUID = NULL_GUID
    struct_type: ClassVar[str] = "Guid"

    def write_body(self, writer, path):
        writer.io.write_guid(self.value)


@dataclass
class StructNode(StructValue):
    """Struct serialized as a nested property list."""
    struct_type: str
    fields: PropertyList = field(default_factory=list)
    struct_id: uuid.UUID = NULL_GUID

    def get(self, name: str) -> Optional[PropertyNode]:
        """Value of the first field called name."""
        prop = get_property(self.fields, name)
        return prop.value if prop is not None else None

    def __getitem__(self, name: str) -> PropertyNode:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __contains__(self, name: str) -> bool:
        return get_property(self.fields, name) is not None

    def __iter__(self) -> Iterator[Property]:
        return iter(self.fields)

    def write_body(self, writer, path):
        writer.write_properties(self.fields, path)


@dataclass
class RawStructNode(StructValue):
    """Native fixed-layout struct (Vector, DateTime, ...) kept as raw bytes."""
    struct_type: str
    data: bytes = b""
    struct_id: uuid.UUID = NULL_GUID

    def write_body(self, writer, path):
        writer.io.write_bytes(self.data)


# ═══════════════════════════════════════════════════════════════════════════════
# CONTAINERS
# ═══════════════════════════════════════════════════════════════════════════════

@register_property("ArrayProperty")
@dataclass
class ArrayNode(PropertyNode):
    """
    Array of untagged elements. Struct arrays carry one inner tag describing
    the element struct type; it is kept so it can be written back verbatim.
    """
    array_type: str = "IntProperty"
    items: List[PropertyNode] = field(default_factory=list)
    struct_type: Optional[str] = None
    inner_name: Optional[str] = None
    inner_struct_id: uuid.UUID = NULL_GUID
    inner_array_index: int = 0
    inner_guid: Optional[uuid.UUID] = None
    type_name: ClassVar[str] = "ArrayProperty"

    @classmethod
    def read_tagged(cls, reader, tag, path):
        array_type = reader.io.read_fstring()
        reader.read_property_guid(tag)
        start = reader.begin_body(tag)
        node = reader.read_array_body(array_type, tag, path)
        if node is None:
            reader.io.position = start
            node = OpaqueNode("ArrayProperty", reader.io.read_bytes(tag.size), (array_type,))
            logger.debug(f"Kept ArrayProperty<{array_type}> '{path}' as {tag.size} opaque bytes")
        reader.end_body(tag, start)
        return node

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[PropertyNode]:
        return iter(self.items)

    def write_header(self, writer):
        writer.io.write_fstring(self.array_type)

    def write_body(self, writer, path):
        writer.write_array_body(self, path)


@dataclass
class BlobNode(PropertyNode):
    """ArrayProperty of ByteProperty: an opaque byte blob such as RawData."""
    data: bytes = b""
    type_name: ClassVar[str] = "ArrayProperty"
    array_type: ClassVar[str] = "ByteProperty"

    def __len__(self) -> int:
        return len(self.data)

    def write_header(self, writer):
        writer.io.write_fstring(self.array_type)

    def write_body(self, writer, path):
        writer.io.write_uint32(len(self.data))
        writer.io.write_bytes(self.data)


@dataclass
class MapEntry:
    key: PropertyNode
    value: PropertyNode


@register_property("MapProperty")
@dataclass
class MapNode(PropertyNode):
    """Ordered key/value pairs; order is kept exactly as read."""
    key_type: str = "StructProperty"
    value_type: str = "StructProperty"
    entries: List[MapEntry] = field(default_factory=list)
    type_name: ClassVar[str] = "MapProperty"

    @classmethod
    def read_tagged(cls, reader, tag, path):
        key_type = reader.io.read_fstring()
        value_type = reader.io.read_fstring()
        reader.read_property_guid(tag)
        start = reader.begin_body(tag)
        node = reader.read_map_body(key_type, value_type, path)
        if node is None:
            reader.io.position = start
            node = OpaqueNode("MapProperty", reader.io.read_bytes(tag.size), (key_type, value_type))
            logger.debug(f"Kept MapProperty<{key_type}, {value_type}> '{path}' as {tag.size} opaque bytes")
        reader.end_body(tag, start)
        return node

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[MapEntry]:
        return iter(self.entries)

    def write_header(self, writer):
        writer.io.write_fstring(self.key_type)
        writer.io.write_fstring(self.value_type)

    def write_body(self, writer, path):
        writer.io.write_uint32(0)
        writer.io.write_uint32(len(self.entries))
        for entry in self.entries:
            entry.key.write_element(writer, path)
            entry.value.write_element(writer, path)


# ═══════════════════════════════════════════════════════════════════════════════
# FALLBACK
# ═══════════════════════════════════════════════════════════════════════════════

# Extra FString header fields that precede the GUID flag, per type
OPAQUE_TYPE_ARGS = {
    "SetProperty": 1,
}


@register_property(*OPAQUE_TYPE_ARGS)
@dataclass
class OpaqueNode(PropertyNode):
    """
    Fallback for unrecognized property types and container bodies this codec
    does not interpret. The body is kept byte-for-byte with its declared size.
    """
    type_name: str = ""
    data: bytes = b""
    type_args: Tuple[Optional[str], ...] = ()

    @classmethod
    def read_tagged(cls, reader, tag, path):
        if tag.type_name not in PROPERTY_TYPES:
            logger.debug(f"Unknown property type {tag.type_name} at '{path}', keeping {tag.size} raw bytes")
        type_args = tuple(reader.io.read_fstring() for _ in range(OPAQUE_TYPE_ARGS.get(tag.type_name, 0)))
        reader.read_property_guid(tag)
        start = reader.begin_body(tag)
        node = cls(tag.type_name, reader.io.read_bytes(tag.size), type_args)
        reader.end_body(tag, start)
        return node

    def write_header(self, writer):
        for arg in self.type_args:
            writer.io.write_fstring(arg)

    def write_body(self, writer, path):
        writer.io.write_bytes(self.data)
