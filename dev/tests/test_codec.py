"""
guildfix - Property Tree Codec tests

Hand-assembled tag bytes are decoded and re-encoded, so the layout is
checked independently of the writer.
"""

import struct
import uuid

import pytest

from guildfix.errors import SizeMismatch, UnexpectedEnd
from guildfix.formats.gvas.base import (
    ArrayNode, BlobNode, BoolNode, ByteNode, EnumNode, FloatNode, GuidNode, IntNode,
    MapEntry, MapNode, OpaqueNode, Property, RawStructNode, StrNode, StructNode,
)
from guildfix.formats.gvas.codec import decode_properties, encode_properties
from guildfix.utils.binary import guid_to_bytes


def fs(text):
    if text is None:
        return struct.pack("<i", 0)
    return struct.pack("<i", len(text) + 1) + text.encode("ascii") + b"\x00"


def u32(value):
    return struct.pack("<I", value)


def tag(name, type_name, body, header=b"", guid=None):
    flag = b"\x00" if guid is None else b"\x01" + guid_to_bytes(guid)
    return fs(name) + fs(type_name) + u32(len(body)) + u32(0) + header + flag + body


NONE = fs("None")


def assert_round_trip(data):
    properties = decode_properties(data)
    assert encode_properties(properties) == data
    return properties


# ═══════════════════════════════════════════════════════════════════════════════
# SCALARS
# ═══════════════════════════════════════════════════════════════════════════════

def test_int_property_layout():
    data = tag("Count", "IntProperty", struct.pack("<i", 7)) + NONE
    properties = assert_round_trip(data)
    assert properties == [Property("Count", IntNode(7, "IntProperty"))]


def test_int_family_and_floats():
    data = (
        tag("A", "Int64Property", struct.pack("<q", -9))
        + tag("B", "UInt16Property", struct.pack("<H", 65535))
        + tag("C", "FloatProperty", struct.pack("<f", 2.5))
        + tag("D", "DoubleProperty", struct.pack("<d", 0.125))
        + NONE
    )
    properties = assert_round_trip(data)
    assert [p.value for p in properties] == [
        IntNode(-9, "Int64Property"), IntNode(65535, "UInt16Property"),
        FloatNode(2.5, "FloatProperty"), FloatNode(0.125, "DoubleProperty"),
    ]


def test_bool_value_lives_in_header():
    data = fs("IsPlayer") + fs("BoolProperty") + u32(0) + u32(0) + b"\x01" + b"\x00" + NONE
    properties = assert_round_trip(data)
    assert properties[0].value == BoolNode(True)


def test_strings_enum_and_byte():
    data = (
        tag("NickName", "StrProperty", fs("Bob"))
        + tag("Empty", "StrProperty", fs(None))
        + tag("Mesh", "NameProperty", fs("Head1"))
        + tag("GroupType", "EnumProperty", fs("EPalGroupType::Guild"), header=fs("EPalGroupType"))
        + tag("Raw", "ByteProperty", b"\x2a", header=fs("None"))
        + tag("Gender", "ByteProperty", fs("EPalGenderType::Female"), header=fs("EPalGenderType"))
        + NONE
    )
    properties = assert_round_trip(data)
    values = [p.value for p in properties]
    assert values[0] == StrNode("Bob", "StrProperty")
    assert values[1] == StrNode(None, "StrProperty")
    assert values[2] == StrNode("Head1", "NameProperty")
    assert values[3] == EnumNode("EPalGroupType::Guild", "EPalGroupType")
    assert values[4] == ByteNode(42, "None")
    assert values[5] == ByteNode("EPalGenderType::Female", "EPalGenderType")


def test_property_guid_is_kept():
    guid = uuid.UUID("01234567-89ab-cdef-0123-456789abcdef")
    data = tag("Tagged", "IntProperty", struct.pack("<i", 1), guid=guid) + NONE
    properties = assert_round_trip(data)
    assert properties[0].guid == guid


def test_array_index_is_kept():
    data = fs("Slot") + fs("IntProperty") + u32(4) + u32(3) + b"\x00" + struct.pack("<i", 5) + NONE
    properties = assert_round_trip(data)
    assert properties[0].array_index == 3


# ═══════════════════════════════════════════════════════════════════════════════
# STRUCTS
# ═══════════════════════════════════════════════════════════════════════════════

def struct_header(struct_type, struct_id=uuid.UUID(int=0)):
    return fs(struct_type) + guid_to_bytes(struct_id)


def test_guid_struct():
    guid = uuid.UUID("aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee")
    data = tag("PlayerUId", "StructProperty", guid_to_bytes(guid), header=struct_header("Guid")) + NONE
    properties = assert_round_trip(data)
    assert properties[0].value == GuidNode(guid)


def test_nested_struct():
    inner = tag("Value", "Int64Property", struct.pack("<q", 500000)) + NONE
    data = tag("HP", "StructProperty", inner, header=struct_header("FixedPoint64")) + NONE
    properties = assert_round_trip(data)
    hp = properties[0].value
    assert isinstance(hp, StructNode)
    assert hp.struct_type == "FixedPoint64"
    assert hp["Value"] == IntNode(500000, "Int64Property")


def test_native_struct_is_raw():
    body = struct.pack("<3d", 1.0, 2.0, 3.0)
    data = tag("Location", "StructProperty", body, header=struct_header("Vector")) + NONE
    properties = assert_round_trip(data)
    assert properties[0].value == RawStructNode("Vector", body)


def test_struct_id_is_kept():
    struct_id = uuid.UUID("11111111-2222-3333-4444-555555555555")
    inner = tag("X", "IntProperty", struct.pack("<i", 1)) + NONE
    data = tag("S", "StructProperty", inner, header=struct_header("Custom", struct_id)) + NONE
    properties = assert_round_trip(data)
    assert properties[0].value.struct_id == struct_id


# ═══════════════════════════════════════════════════════════════════════════════
# ARRAYS
# ═══════════════════════════════════════════════════════════════════════════════

def test_byte_array_is_blob():
    body = u32(5) + b"hello"
    data = tag("RawData", "ArrayProperty", body, header=fs("ByteProperty")) + NONE
    properties = assert_round_trip(data)
    assert properties[0].value == BlobNode(b"hello")


def test_scalar_array():
    body = u32(2) + fs("Grass") + fs("Rock")
    data = tag("Tags", "ArrayProperty", body, header=fs("NameProperty")) + NONE
    properties = assert_round_trip(data)
    array = properties[0].value
    assert isinstance(array, ArrayNode)
    assert list(array) == [StrNode("Grass", "NameProperty"), StrNode("Rock", "NameProperty")]


def test_struct_array_with_inner_header():
    element = tag("StatusPoint", "IntProperty", struct.pack("<i", 4)) + NONE
    elements = element + element
    inner = (
        fs("GotStatusPointList") + fs("StructProperty") + u32(len(elements)) + u32(0)
        + struct_header("PalGotStatusPoint") + b"\x00"
    )
    body = u32(2) + inner + elements
    data = tag("GotStatusPointList", "ArrayProperty", body, header=fs("StructProperty")) + NONE
    properties = assert_round_trip(data)
    array = properties[0].value
    assert array.struct_type == "PalGotStatusPoint"
    assert len(array) == 2
    assert array.items[1]["StatusPoint"] == IntNode(4, "IntProperty")


def test_struct_array_inner_size_mismatch():
    element = tag("StatusPoint", "IntProperty", struct.pack("<i", 4)) + NONE
    inner = (
        fs("List") + fs("StructProperty") + u32(len(element) + 1) + u32(0)
        + struct_header("PalGotStatusPoint") + b"\x00"
    )
    body = u32(1) + inner + element + b"\x00"
    data = tag("List", "ArrayProperty", body, header=fs("StructProperty")) + NONE
    with pytest.raises(SizeMismatch):
        decode_properties(data)


def test_unknown_array_element_type_is_opaque():
    body = u32(1) + b"\x01\x02\x03\x04\x05\x06\x07\x08"
    data = tag("Soft", "ArrayProperty", body, header=fs("SoftObjectProperty")) + NONE
    properties = assert_round_trip(data)
    assert properties[0].value == OpaqueNode("ArrayProperty", body, ("SoftObjectProperty",))


# ═══════════════════════════════════════════════════════════════════════════════
# MAPS
# ═══════════════════════════════════════════════════════════════════════════════

def test_scalar_map():
    body = u32(0) + u32(2) + fs("a") + struct.pack("<i", 1) + fs("b") + struct.pack("<i", 2)
    data = tag("Scores", "MapProperty", body, header=fs("StrProperty") + fs("IntProperty")) + NONE
    properties = assert_round_trip(data)
    assert list(properties[0].value) == [
        MapEntry(StrNode("a", "StrProperty"), IntNode(1, "IntProperty")),
        MapEntry(StrNode("b", "StrProperty"), IntNode(2, "IntProperty")),
    ]


def test_hinted_struct_map():
    key = uuid.UUID("aaaaaaaa-0000-0000-0000-000000000001")
    value = tag("Level", "IntProperty", struct.pack("<i", 3)) + NONE
    body = u32(0) + u32(1) + guid_to_bytes(key) + value
    data = tag("Groups", "MapProperty", body, header=fs("StructProperty") + fs("StructProperty")) + NONE

    hints = {".Groups.Key": "Guid", ".Groups.Value": "Struct"}
    properties = decode_properties(data, hints)
    assert encode_properties(properties) == data
    entry = properties[0].value.entries[0]
    assert entry.key == GuidNode(key)
    assert entry.value["Level"] == IntNode(3, "IntProperty")


def test_unhinted_struct_map_is_opaque():
    body = u32(0) + u32(1) + guid_to_bytes(uuid.uuid4()) + struct.pack("<i", 3)
    data = tag("Unknown", "MapProperty", body, header=fs("StructProperty") + fs("IntProperty")) + NONE
    properties = assert_round_trip(data)
    assert properties[0].value == OpaqueNode("MapProperty", body, ("StructProperty", "IntProperty"))


def test_map_with_removed_keys_is_opaque():
    body = u32(1) + struct.pack("<i", 9) + u32(0)
    data = tag("Sparse", "MapProperty", body, header=fs("IntProperty") + fs("IntProperty")) + NONE
    properties = assert_round_trip(data)
    assert isinstance(properties[0].value, OpaqueNode)


# ═══════════════════════════════════════════════════════════════════════════════
# UNKNOWN TYPES AND MALFORMED INPUT
# ═══════════════════════════════════════════════════════════════════════════════

def test_unknown_type_preserved():
    data = tag("Mystery", "FancyNewProperty", b"\x01\x02\x03") + NONE
    properties = assert_round_trip(data)
    assert properties[0].value == OpaqueNode("FancyNewProperty", b"\x01\x02\x03")


def test_set_property_preserved():
    body = u32(0) + u32(1) + struct.pack("<i", 5)
    data = tag("Seen", "SetProperty", body, header=fs("IntProperty")) + NONE
    properties = assert_round_trip(data)
    assert properties[0].value == OpaqueNode("SetProperty", body, ("IntProperty",))


def test_declared_size_too_large():
    data = (
        fs("Count") + fs("IntProperty") + u32(8) + u32(0) + b"\x00"
        + struct.pack("<i", 7) + b"\x00\x00\x00\x00" + NONE
    )
    with pytest.raises(SizeMismatch) as exc:
        decode_properties(data)
    assert exc.value.declared == 8
    assert exc.value.actual == 4


def test_declared_size_past_end():
    data = fs("Count") + fs("IntProperty") + u32(400) + u32(0) + b"\x00" + struct.pack("<i", 7) + NONE
    with pytest.raises(UnexpectedEnd):
        decode_properties(data)


def test_nested_struct_size_mismatch():
    inner = tag("Value", "Int64Property", struct.pack("<q", 1)) + NONE
    data = (
        fs("HP") + fs("StructProperty") + u32(len(inner) - 1) + u32(0)
        + struct_header("FixedPoint64") + b"\x00" + inner + NONE
    )
    with pytest.raises((SizeMismatch, UnexpectedEnd)):
        decode_properties(data)


def test_every_truncation_fails():
    inner = tag("Value", "Int64Property", struct.pack("<q", 1)) + NONE
    data = (
        tag("Count", "IntProperty", struct.pack("<i", 7))
        + tag("HP", "StructProperty", inner, header=struct_header("FixedPoint64"))
        + tag("RawData", "ArrayProperty", u32(3) + b"abc", header=fs("ByteProperty"))
        + NONE
    )
    for cut in range(len(data)):
        with pytest.raises((UnexpectedEnd, SizeMismatch)):
            decode_properties(data[:cut])


def test_trailing_bytes_rejected():
    data = tag("Count", "IntProperty", struct.pack("<i", 7)) + NONE + b"\x00"
    with pytest.raises(SizeMismatch):
        decode_properties(data)


# ═══════════════════════════════════════════════════════════════════════════════
# ENCODING
# ═══════════════════════════════════════════════════════════════════════════════

def test_encoder_computes_fresh_sizes():
    properties = [
        Property("Name", StrNode("Bob")),
        Property("Stats", StructNode("Stats", [Property("Level", IntNode(1))])),
    ]
    data = encode_properties(properties)
    decoded = decode_properties(data)
    assert decoded == properties

    properties[0].value = StrNode("A much longer nickname")
    grown = encode_properties(properties)
    assert len(grown) == len(data) + len("A much longer nickname") - len("Bob")
    assert decode_properties(grown) == properties


def test_decoded_tree_preserves_order():
    data = (
        tag("Z", "IntProperty", struct.pack("<i", 1))
        + tag("A", "IntProperty", struct.pack("<i", 2))
        + tag("M", "IntProperty", struct.pack("<i", 3))
        + NONE
    )
    assert [p.name for p in decode_properties(data)] == ["Z", "A", "M"]
