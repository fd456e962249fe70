"""
Save Container

A Palworld .sav file is a small "PlZ" wrapper around an Unreal Engine GVAS
SaveGame:

    uint32  uncompressed length     length of the GVAS body
    uint32  compressed length       see CompressionType
    char[3] "PlZ"
    uint8   compression type
    ...     payload

The GVAS body is a header, the root property list (ended by "None") and a
short trailer that is kept verbatim. A bare GVAS file without the wrapper is
also accepted and written back bare.
"""

import logging
import uuid
import zlib
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Tuple

from ...errors import CompressionError, SizeMismatch, StructureNotFound, UnexpectedEnd
from ...utils.binary import IoBuffer
from .base import PropertyList, PropertyNode, get_property
from .codec import PropertyReader, PropertyWriter
from .type_hints import PALWORLD_TYPE_HINTS

logger = logging.getLogger(__name__)

GVAS_MAGIC = b"GVAS"
PLZ_MAGIC = b"PlZ"
PLZ_HEADER_SIZE = 12
# Bare GVAS files end with at least this zero word after the root properties
GVAS_TRAILER_SIZE = 4


class CompressionType(IntEnum):
    """PlZ compression byte. For ZLIB_TWICE the header's compressed length
    is the size of the inner zlib stream, not of the payload on disk."""
    NONE = 0x30
    ZLIB = 0x31
    ZLIB_TWICE = 0x32


@dataclass
class PlzHeader:
    compression_type: CompressionType
    uncompressed_length: int
    compressed_length: int


@dataclass
class GvasHeader:
    """Unreal SaveGame header (FSaveGameHeader)."""
    save_game_version: int = 3
    package_version_ue4: int = 522
    package_version_ue5: Optional[int] = 1008
    engine_major: int = 5
    engine_minor: int = 1
    engine_patch: int = 1
    engine_build: int = 0
    engine_branch: Optional[str] = "++UE5+Release-5.1"
    custom_format_version: int = 3
    custom_versions: List[Tuple[uuid.UUID, int]] = field(default_factory=list)
    save_game_class_name: Optional[str] = "/Script/Pal.PalWorldSaveGame"

    @classmethod
    def read(cls, io: IoBuffer) -> 'GvasHeader':
        magic = io.read_bytes(4)
        if magic != GVAS_MAGIC:
            raise StructureNotFound("GVAS header", f"bad magic {magic!r}")

        header = cls()
        header.save_game_version = io.read_int32()
        header.package_version_ue4 = io.read_uint32()
        header.package_version_ue5 = io.read_uint32() if header.save_game_version >= 3 else None
        header.engine_major = io.read_uint16()
        header.engine_minor = io.read_uint16()
        header.engine_patch = io.read_uint16()
        header.engine_build = io.read_uint32()
        header.engine_branch = io.read_fstring()
        header.custom_format_version = io.read_uint32()
        count = io.read_uint32()
        header.custom_versions = [(io.read_guid(), io.read_int32()) for _ in range(count)]
        header.save_game_class_name = io.read_fstring()
        return header

    def write(self, io: IoBuffer):
        io.write_bytes(GVAS_MAGIC)
        io.write_int32(self.save_game_version)
        io.write_uint32(self.package_version_ue4)
        if self.save_game_version >= 3:
            io.write_uint32(self.package_version_ue5 or 0)
        io.write_uint16(self.engine_major)
        io.write_uint16(self.engine_minor)
        io.write_uint16(self.engine_patch)
        io.write_uint32(self.engine_build)
        io.write_fstring(self.engine_branch)
        io.write_uint32(self.custom_format_version)
        io.write_uint32(len(self.custom_versions))
        for guid, version in self.custom_versions:
            io.write_guid(guid)
            io.write_int32(version)
        io.write_fstring(self.save_game_class_name)

    @property
    def engine_version(self) -> str:
        return f"{self.engine_major}.{self.engine_minor}.{self.engine_patch}"


def _inflate(data: bytes, what: str) -> bytes:
    decompressor = zlib.decompressobj()
    try:
        out = decompressor.decompress(data)
    except zlib.error as e:
        raise CompressionError(f"{what}: {e}") from e
    if not decompressor.eof:
        raise UnexpectedEnd(len(data), 1, 0)
    return out


def decompress_payload(plz: PlzHeader, payload: bytes) -> bytes:
    """Undo the PlZ compression and check the declared lengths."""
    if plz.compression_type == CompressionType.NONE:
        if len(payload) < plz.uncompressed_length:
            raise UnexpectedEnd(PLZ_HEADER_SIZE + len(payload), plz.uncompressed_length, len(payload))
        body = payload
    elif plz.compression_type == CompressionType.ZLIB:
        if len(payload) < plz.compressed_length:
            raise UnexpectedEnd(PLZ_HEADER_SIZE + len(payload), plz.compressed_length, len(payload))
        body = _inflate(payload, "zlib payload")
    else:
        inner = _inflate(payload, "outer zlib payload")
        if len(inner) != plz.compressed_length:
            raise SizeMismatch("inner zlib stream", plz.compressed_length, len(inner))
        body = _inflate(inner, "inner zlib payload")

    if len(body) != plz.uncompressed_length:
        raise SizeMismatch("GVAS body", plz.uncompressed_length, len(body))
    return body


def compress_payload(compression_type: CompressionType, body: bytes) -> Tuple[bytes, int]:
    """Compress body; returns (payload, compressed length for the header)."""
    if compression_type == CompressionType.NONE:
        return body, len(body)
    if compression_type == CompressionType.ZLIB:
        payload = zlib.compress(body)
        return payload, len(payload)
    inner = zlib.compress(body)
    return zlib.compress(inner), len(inner)


@dataclass
class GvasFile:
    """
    Decoded save container.

    Keeps the bytes it was read from: when nothing changed, to_bytes()
    returns them as they were, so even compressed files round-trip exactly.
    """
    header: GvasHeader = field(default_factory=GvasHeader)
    properties: PropertyList = field(default_factory=list)
    trailer: bytes = b"\x00\x00\x00\x00"
    plz: Optional[PlzHeader] = None
    original_data: Optional[bytes] = field(default=None, repr=False, compare=False)
    original_body: Optional[bytes] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_bytes(cls, data: bytes, type_hints: Optional[Dict[str, str]] = None) -> 'GvasFile':
        """Decode a .sav file (PlZ-wrapped or bare GVAS)."""
        data = bytes(data)
        plz = None
        if data.startswith(GVAS_MAGIC):
            body = data
        else:
            if len(data) < PLZ_HEADER_SIZE:
                raise UnexpectedEnd(0, PLZ_HEADER_SIZE, len(data))
            io = IoBuffer.from_bytes(data)
            uncompressed_length = io.read_uint32()
            compressed_length = io.read_uint32()
            magic = io.read_bytes(3)
            if magic != PLZ_MAGIC:
                raise StructureNotFound("PlZ header", f"bad magic {magic!r}")
            raw_type = io.read_uint8()
            try:
                compression_type = CompressionType(raw_type)
            except ValueError:
                raise StructureNotFound("PlZ header", f"unsupported compression type {raw_type:#x}") from None
            plz = PlzHeader(compression_type, uncompressed_length, compressed_length)
            body = decompress_payload(plz, data[PLZ_HEADER_SIZE:])
            logger.debug(f"PlZ {compression_type.name}: {len(data)} bytes -> {len(body)} byte GVAS body")

        io = IoBuffer.from_bytes(body)
        header = GvasHeader.read(io)
        properties = PropertyReader(io, type_hints).read_properties()
        # No PlZ lengths to check a bare file against, so a short trailer is truncation
        if plz is None and io.remaining < GVAS_TRAILER_SIZE:
            raise UnexpectedEnd(io.position, GVAS_TRAILER_SIZE, io.remaining)
        trailer = io.read_bytes(io.remaining)
        logger.debug(f"Decoded {len(properties)} root properties, {len(trailer)} trailer bytes")

        return cls(header, properties, trailer, plz, original_data=data, original_body=body)

    def encode_body(self) -> bytes:
        """Encode header, root properties and trailer as one GVAS body."""
        writer = PropertyWriter()
        self.header.write(writer.io)
        writer.write_properties(self.properties)
        writer.io.write_bytes(self.trailer)
        return writer.getvalue()

    def to_bytes(self) -> bytes:
        """Encode the whole file, re-wrapping it the way it was read."""
        body = self.encode_body()
        if self.original_data is not None and body == self.original_body:
            return self.original_data
        if self.plz is None:
            return body

        payload, compressed_length = compress_payload(self.plz.compression_type, body)
        io = IoBuffer.writer()
        io.write_uint32(len(body))
        io.write_uint32(compressed_length)
        io.write_bytes(PLZ_MAGIC)
        io.write_uint8(int(self.plz.compression_type))
        io.write_bytes(payload)
        return io.getvalue()

    def get(self, name: str) -> Optional[PropertyNode]:
        """Root property value by name."""
        prop = get_property(self.properties, name)
        return prop.value if prop is not None else None

    @property
    def compression(self) -> str:
        return self.plz.compression_type.name if self.plz else "GVAS"

    def summary(self) -> str:
        """One-screen description of the container."""
        lines = [
            f"Format: {self.compression}",
            f"Engine: {self.header.engine_version} ({self.header.engine_branch})",
            f"Save class: {self.header.save_game_class_name}",
            f"Root properties: {', '.join(p.name for p in self.properties)}",
        ]
        return "\n".join(lines)
