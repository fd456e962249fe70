"""Bounds-checked binary I/O for GVAS parsing."""

import struct
import uuid
from enum import Enum
from io import BytesIO
from typing import BinaryIO, Optional

from ..errors import SizeMismatch, UnexpectedEnd


class ByteOrder(Enum):
    """Byte order enum for struct packing/unpacking."""
    BIG_ENDIAN = ">"
    LITTLE_ENDIAN = "<"


NULL_GUID = uuid.UUID(int=0)


def guid_from_bytes(data: bytes) -> uuid.UUID:
    """Decode an Unreal FGuid (four little-endian uint32 words)."""
    a, b, c, d = struct.unpack("<4I", data)
    return uuid.UUID(int=(a << 96) | (b << 64) | (c << 32) | d)


def guid_to_bytes(value: uuid.UUID) -> bytes:
    """Encode a UUID as an Unreal FGuid."""
    n = value.int
    return struct.pack(
        "<4I",
        (n >> 96) & 0xFFFFFFFF,
        (n >> 64) & 0xFFFFFFFF,
        (n >> 32) & 0xFFFFFFFF,
        n & 0xFFFFFFFF,
    )


def fstring_size(value: Optional[str]) -> int:
    """Number of bytes write_fstring() produces for value."""
    if value is None:
        return 4
    if _is_ansi(value):
        return 4 + len(value) + 1
    return 4 + len(value.encode("utf-16-le", errors="surrogatepass")) + 2


class AnsiString(str):
    """Text read as ANSI (Latin-1) although it has characters above 0x7F."""


class WideString(str):
    """Text read as UTF-16LE although every character is ASCII."""


def _is_ansi(value: str) -> bool:
    if isinstance(value, AnsiString):
        return True
    if isinstance(value, WideString):
        return False
    return all(ord(ch) < 0x80 for ch in value)


class IoBuffer:
    """
    Binary reader/writer with endian support.

    Reads never go past the end of the buffer: they raise UnexpectedEnd.
    Writes overwrite at the current position and grow the buffer when they
    run past its end, advancing exactly as the matching read would.
    """

    def __init__(self, stream: BinaryIO, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN):
        self.stream = stream
        self.byte_order = byte_order

    @classmethod
    def from_bytes(cls, data: bytes, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> 'IoBuffer':
        """Create from bytes."""
        return cls(BytesIO(data), byte_order)

    @classmethod
    def writer(cls, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> 'IoBuffer':
        """Create an empty buffer for writing."""
        return cls(BytesIO(), byte_order)

    @property
    def position(self) -> int:
        """Current position in stream."""
        return self.stream.tell()

    @position.setter
    def position(self, value: int):
        """Seek to position."""
        self.stream.seek(value)

    @property
    def length(self) -> int:
        """Total size of the underlying buffer."""
        current = self.stream.tell()
        self.stream.seek(0, 2)
        end = self.stream.tell()
        self.stream.seek(current)
        return end

    @property
    def remaining(self) -> int:
        """Bytes left between the cursor and the end of the buffer."""
        return max(0, self.length - self.position)

    @property
    def has_more(self) -> bool:
        """Check if there are more bytes to read."""
        return self.remaining > 0

    def has_bytes(self, num_bytes: int) -> bool:
        """Check if there are at least num_bytes remaining."""
        return self.remaining >= num_bytes

    def _require(self, num_bytes: int):
        if num_bytes < 0:
            raise UnexpectedEnd(self.position, num_bytes, self.remaining)
        available = self.remaining
        if available < num_bytes:
            raise UnexpectedEnd(self.position, num_bytes, available)

    def skip(self, num_bytes: int):
        """Skip bytes from current position."""
        self._require(num_bytes)
        self.stream.seek(num_bytes, 1)

    def seek(self, offset: int, whence: int = 0):
        """Seek in stream (whence: 0=start, 1=current, 2=end)."""
        self.stream.seek(offset, whence)

    def getvalue(self) -> bytes:
        """Whole buffer contents."""
        return self.stream.getvalue()

    # ─────────────────────────────────────────────────────────────
    # READ
    # ─────────────────────────────────────────────────────────────

    def _unpack(self, code: str, size: int):
        self._require(size)
        return struct.unpack(f"{self.byte_order.value}{code}", self.stream.read(size))[0]

    def read_bytes(self, count: int) -> bytes:
        """Read raw bytes."""
        self._require(count)
        return self.stream.read(count)

    def read_byte(self) -> int:
        """Read single byte (0-255)."""
        return self.read_bytes(1)[0]

    def read_uint8(self) -> int:
        return self.read_byte()

    def read_int8(self) -> int:
        return self._unpack("b", 1)

    def read_uint16(self) -> int:
        return self._unpack("H", 2)

    def read_int16(self) -> int:
        return self._unpack("h", 2)

    def read_uint32(self) -> int:
        return self._unpack("I", 4)

    def read_int32(self) -> int:
        return self._unpack("i", 4)

    def read_uint64(self) -> int:
        return self._unpack("Q", 8)

    def read_int64(self) -> int:
        return self._unpack("q", 8)

    def read_float(self) -> float:
        """Read 32-bit float."""
        return self._unpack("f", 4)

    def read_double(self) -> float:
        """Read 64-bit double."""
        return self._unpack("d", 8)

    def read_guid(self) -> uuid.UUID:
        """Read a 16-byte Unreal FGuid."""
        return guid_from_bytes(self.read_bytes(16))

    def read_fstring(self) -> Optional[str]:
        """
        Read an Unreal FString.

        int32 length prefix; positive means ANSI bytes, negative means UTF-16LE
        code units, both counting the trailing NUL. A zero length is the null
        string and decodes to None so it can be written back as zero.

        Text whose stored width differs from the one write_fstring() would
        pick comes back as AnsiString or WideString, so it is written back
        in the width it was read.
        """
        start = self.position
        length = self.read_int32()
        if length == 0:
            return None
        if length > 0:
            raw = self.read_bytes(length)
            if raw[-1:] != b"\x00":
                raise SizeMismatch("FString without terminator", length, length - 1, start)
            text = raw[:-1].decode("latin-1")
            return text if _is_ansi(text) else AnsiString(text)
        raw = self.read_bytes(-length * 2)
        if raw[-2:] != b"\x00\x00":
            raise SizeMismatch("FString without terminator", -length, -length - 1, start)
        text = raw[:-2].decode("utf-16-le", errors="surrogatepass")
        return WideString(text) if _is_ansi(text) else text

    # ─────────────────────────────────────────────────────────────
    # WRITE
    # ─────────────────────────────────────────────────────────────

    def _pack(self, code: str, value):
        self.stream.write(struct.pack(f"{self.byte_order.value}{code}", value))

    def write_bytes(self, data: bytes):
        """Write raw bytes."""
        self.stream.write(data)

    def write_byte(self, value: int):
        """Write single byte."""
        self.stream.write(struct.pack('B', value))

    def write_uint8(self, value: int):
        self.write_byte(value)

    def write_int8(self, value: int):
        self._pack("b", value)

    def write_uint16(self, value: int):
        self._pack("H", value)

    def write_int16(self, value: int):
        self._pack("h", value)

    def write_uint32(self, value: int):
        self._pack("I", value)

    def write_int32(self, value: int):
        self._pack("i", value)

    def write_uint64(self, value: int):
        self._pack("Q", value)

    def write_int64(self, value: int):
        self._pack("q", value)

    def write_float(self, value: float):
        self._pack("f", value)

    def write_double(self, value: float):
        self._pack("d", value)

    def write_guid(self, value: uuid.UUID):
        self.write_bytes(guid_to_bytes(value))

    def write_fstring(self, value: Optional[str]):
        """
        Write an FString: ANSI when every character is below 0x80, UTF-16LE
        otherwise. AnsiString and WideString keep the width they were read in.
        """
        if value is None:
            self.write_int32(0)
        elif _is_ansi(value):
            self.write_int32(len(value) + 1)
            self.write_bytes(value.encode("latin-1") + b"\x00")
        else:
            encoded = value.encode("utf-16-le", errors="surrogatepass")
            self.write_int32(-(len(encoded) // 2 + 1))
            self.write_bytes(encoded + b"\x00\x00")

    def reserve_uint32(self) -> int:
        """Write a placeholder uint32 and return its offset for patch_uint32()."""
        offset = self.position
        self.write_uint32(0)
        return offset

    def patch_uint32(self, offset: int, value: int):
        """Overwrite a uint32 at offset without moving the cursor."""
        current = self.position
        self.position = offset
        self.write_uint32(value)
        self.position = current
