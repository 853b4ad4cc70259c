"""
NVS Layout Settings
===================
Store-wide constants for the NVS record format: block size, header field
offsets, size limits and the enumeration of value types with their on-flash
codes and byte widths.

Entry header layout (32 bytes):
  [0]      namespace index
  [1]      type code
  [2]      span (blocks occupied, header included)
  [3]      chunk index (0xFF = not a blob chunk)
  [4..8]   header CRC32
  [8..24]  key, null terminated, zero padded
  [24..32] data field (inline value, or string size + CRC32)

Endianness: ALL multi-byte integers are LITTLE-ENDIAN, as the flash reader
expects. The '<' prefix in every struct format enforces it.
"""

import struct
from enum import IntEnum
from typing import Optional

# ─── Constants ──────────────────────────────────────────────────────────────

BLOCK_SIZE = 32            # one entry slot on flash
KEY_FIELD_SIZE = 16        # key bytes + terminator + zero padding
MAX_KEY_LENGTH = 15        # KEY_FIELD_SIZE minus the terminator
MAX_STRING_SIZE = 4000     # encoded string + terminator
MAX_NAMESPACE_INDEX = 0xFF
CHUNK_INDEX_NONE = 0xFF
ERASED_BYTE = 0xFF         # value of unwritten flash

# Header field offsets
NAMESPACE_OFFSET = 0
TYPE_OFFSET = 1
SPAN_OFFSET = 2
CHUNK_INDEX_OFFSET = 3
CRC_OFFSET = 4
KEY_OFFSET = 8
DATA_OFFSET = 24
DATA_FIELD_SIZE = 8

# String data field: size(H) at +0, CRC32(I) at +4
STRING_SIZE_FMT = "<H"
STRING_CRC_OFFSET = DATA_OFFSET + 4

CRC_FMT = "<I"
CRC_STRUCT = struct.Struct(CRC_FMT)


class NvsType(IntEnum):
    """Value types understood by the encoder, valued by their on-flash code."""
    U8 = 0x01
    I8 = 0x11
    U16 = 0x02
    I16 = 0x12
    U32 = 0x04
    I32 = 0x14
    U64 = 0x08
    I64 = 0x18
    STR = 0x21


# ─── Primitive types ────────────────────────────────────────────────────────

PRIMITIVE_FORMATS: dict[NvsType, str] = {
    NvsType.U8: "<B",
    NvsType.I8: "<b",
    NvsType.U16: "<H",
    NvsType.I16: "<h",
    NvsType.U32: "<I",
    NvsType.I32: "<i",
    NvsType.U64: "<Q",
    NvsType.I64: "<q",
}

# STR is variable-length: payload lives in the data blocks after the header

_SIGNED = {NvsType.I8, NvsType.I16, NvsType.I32, NvsType.I64}


def is_primitive(nvs_type: NvsType) -> bool:
    """Return True if the value is stored inline in the header data field."""
    return nvs_type in PRIMITIVE_FORMATS


def primitive_width(nvs_type: NvsType) -> Optional[int]:
    """Return the byte width of a primitive type, or None for STR."""
    fmt = PRIMITIVE_FORMATS.get(nvs_type)
    if fmt is None:
        return None
    return struct.calcsize(fmt)


def value_range(nvs_type: NvsType) -> tuple[int, int]:
    """
    Inclusive (min, max) of the integers a primitive type can hold.
    Raises ValueError for non-primitive types.
    """
    width = primitive_width(nvs_type)
    if width is None:
        raise ValueError(f"{nvs_type.name} has no numeric range")
    bits = width * 8
    if nvs_type in _SIGNED:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1


def blocks_for(payload_size: int) -> int:
    """Number of BLOCK_SIZE blocks needed to hold payload_size bytes."""
    return -(-payload_size // BLOCK_SIZE)


def type_from_string(type_str: str) -> NvsType:
    """Convert a string like 'u16' or 'STR' to an NvsType member."""
    normalized = type_str.strip().upper()
    try:
        return NvsType[normalized]
    except KeyError:
        raise ValueError(f"Unknown NVS type: {type_str!r}. "
                         f"Valid types: {[t.name for t in NvsType]}")
