"""
GVAS (Unreal Engine SaveGame) format support.

Property tree nodes, the tagged-property codec and the PlZ/GVAS container.
"""

from .base import (
    PropertyTag, PropertyNode, Property, PropertyList, get_property,
    PROPERTY_TYPES, register_property, get_property_class,
    IntNode, FloatNode, BoolNode, StrNode, EnumNode, ByteNode,
    StructValue, GuidNode, StructNode, RawStructNode,
    ArrayNode, BlobNode, MapEntry, MapNode, OpaqueNode,
)
from .codec import PropertyReader, PropertyWriter, decode_properties, encode_properties
from .gvas_file import GvasFile, GvasHeader, PlzHeader, CompressionType
from .type_hints import PALWORLD_TYPE_HINTS, NATIVE_STRUCT_SIZES

__all__ = [
    # Tree
    'PropertyTag', 'PropertyNode', 'Property', 'PropertyList', 'get_property',
    'PROPERTY_TYPES', 'register_property', 'get_property_class',
    'IntNode', 'FloatNode', 'BoolNode', 'StrNode', 'EnumNode', 'ByteNode',
    'StructValue', 'GuidNode', 'StructNode', 'RawStructNode',
    'ArrayNode', 'BlobNode', 'MapEntry', 'MapNode', 'OpaqueNode',
    # Codec
    'PropertyReader', 'PropertyWriter', 'decode_properties', 'encode_properties',
    # Container
    'GvasFile', 'GvasHeader', 'PlzHeader', 'CompressionType',
    'PALWORLD_TYPE_HINTS', 'NATIVE_STRUCT_SIZES',
]
