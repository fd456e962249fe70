"""
guildfix - Save Container tests

PlZ compression types, GVAS header, round-trip fidelity and rejection of
damaged or foreign files.
"""

import struct
import zlib

import pytest

from guildfix.errors import CompressionError, SizeMismatch, StructureNotFound, UnexpectedEnd
from guildfix.formats.gvas.base import IntNode, OpaqueNode, Property, StrNode, StructNode
from guildfix.formats.gvas.gvas_file import CompressionType, GvasFile

from save_builder import build_world, build_world_bytes


@pytest.mark.parametrize("compression", list(CompressionType))
def test_round_trip_is_byte_identical(compression):
    data = build_world_bytes(compression=compression)
    save = GvasFile.from_bytes(data)
    assert save.plz.compression_type == compression
    assert save.to_bytes() == data


def test_plz_header_fields():
    data = build_world_bytes(compression=CompressionType.ZLIB)
    uncompressed, compressed = struct.unpack_from("<II", data)
    assert data[8:11] == b"PlZ"
    assert data[11] == 0x31
    assert compressed == len(data) - 12
    assert len(zlib.decompress(data[12:])) == uncompressed


def test_double_zlib_declares_inner_length():
    data = build_world_bytes(compression=CompressionType.ZLIB_TWICE)
    uncompressed, compressed = struct.unpack_from("<II", data)
    inner = zlib.decompress(data[12:])
    assert len(inner) == compressed
    assert len(zlib.decompress(inner)) == uncompressed


def test_bare_gvas_round_trip():
    data = build_world_bytes(compression=None)
    assert data.startswith(b"GVAS")
    save = GvasFile.from_bytes(data)
    assert save.plz is None
    assert save.compression == "GVAS"
    assert save.to_bytes() == data


def test_stored_string_widths_round_trip():
    save = build_world(compression=None)
    save.properties.append(Property("Label", StrNode("abcde")))
    # Same lengths, so only the text bytes change: ANSI Latin-1 in both places
    data = (save.to_bytes()
            .replace(b"++UE5+Release-5.1\x00", b"++UE5+R\xe9lease-5.1\x00")
            .replace(b"\x06\x00\x00\x00abcde\x00", b"\x06\x00\x00\x00ab\xe9de\x00"))

    reread = GvasFile.from_bytes(data)
    assert reread.header.engine_branch == "++UE5+Rélease-5.1"
    assert reread.get("Label") == StrNode("abéde")
    assert reread.encode_body() == data
    assert reread.to_bytes() == data

    # A mutation elsewhere leaves both strings in their stored width
    reread.properties[0].value = IntNode(101)
    patched = reread.to_bytes()
    assert b"++UE5+R\xe9lease-5.1\x00" in patched
    assert b"\x06\x00\x00\x00ab\xe9de\x00" in patched


def test_header_and_trailer_decoded():
    save = GvasFile.from_bytes(build_world_bytes())
    assert save.header.save_game_version == 3
    assert save.header.engine_version == "5.1.1"
    assert save.header.save_game_class_name == "/Script/Pal.PalWorldSaveGame"
    assert len(save.header.custom_versions) == 2
    assert save.trailer == b"\x00\x00\x00\x00"
    assert [p.name for p in save.properties] == ["Version", "Timestamp", "worldSaveData"]


def test_unknown_nodes_survive_decode():
    save = GvasFile.from_bytes(build_world_bytes())
    world = save.get("worldSaveData")
    assert isinstance(world, StructNode)
    assert world["FutureFeature"] == OpaqueNode("FancyNewProperty", b"\xde\xad\xbe\xef")
    # No type hint for this map's struct key
    assert isinstance(world["ItemOrder"], OpaqueNode)


def test_mutation_recompresses_with_fresh_lengths():
    data = build_world_bytes(compression=CompressionType.ZLIB)
    save = GvasFile.from_bytes(data)
    save.properties[0].value = IntNode(101)
    patched = save.to_bytes()
    assert patched != data

    reread = GvasFile.from_bytes(patched)
    assert reread.get("Version") == IntNode(101, "IntProperty")
    assert reread.plz.compression_type == CompressionType.ZLIB
    assert reread.get("worldSaveData") == save.get("worldSaveData")


def test_new_container_encodes():
    save = build_world()
    assert save.original_data is None
    assert GvasFile.from_bytes(save.to_bytes()).properties[0].value == IntNode(100, "IntProperty")


# ═══════════════════════════════════════════════════════════════════════════════
# REJECTION
# ═══════════════════════════════════════════════════════════════════════════════

def test_unrelated_file_is_rejected():
    with pytest.raises(StructureNotFound):
        GvasFile.from_bytes(b"This is not a save file, just some text.")


def test_unsupported_compression_type():
    data = bytearray(build_world_bytes(compression=CompressionType.ZLIB))
    data[11] = 0x33
    with pytest.raises(StructureNotFound):
        GvasFile.from_bytes(bytes(data))


def test_bad_gvas_magic():
    data = build_world_bytes(compression=CompressionType.NONE)
    body = b"GVAZ" + data[16:]
    plz = struct.pack("<II", len(body), len(body)) + b"PlZ\x30"
    with pytest.raises(StructureNotFound):
        GvasFile.from_bytes(plz + body)


def test_damaged_zlib_stream():
    data = bytearray(build_world_bytes(compression=CompressionType.ZLIB))
    data[12] ^= 0xFF
    with pytest.raises(CompressionError):
        GvasFile.from_bytes(bytes(data))


def test_declared_length_disagrees():
    data = bytearray(build_world_bytes(compression=CompressionType.ZLIB))
    struct.pack_into("<I", data, 0, struct.unpack_from("<I", data)[0] + 1)
    with pytest.raises(SizeMismatch):
        GvasFile.from_bytes(bytes(data))


@pytest.mark.parametrize("compression", list(CompressionType) + [None])
def test_truncation_never_decodes(compression):
    data = build_world_bytes(compression=compression)
    step = max(1, len(data) // 97)
    for cut in list(range(0, len(data), step)) + [len(data) - 1]:
        with pytest.raises((UnexpectedEnd, SizeMismatch)):
            GvasFile.from_bytes(data[:cut])


def test_bare_gvas_cut_inside_trailer():
    data = build_world_bytes(compression=None)
    with pytest.raises(UnexpectedEnd):
        GvasFile.from_bytes(data[:-2])
