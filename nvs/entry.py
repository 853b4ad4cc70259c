"""
NVS Entry Encoder
=================
Encodes one typed key/value pair into the NVS record format: a 32-byte
header block, followed for strings by BLOCK_SIZE-aligned data blocks.

Primitive entry (span = 1):
  header data field = value, little-endian, padded with 0xFF to 8 bytes

String entry (span = 1 + ceil(len(payload) / BLOCK_SIZE)):
  payload           = UTF-8 value + b"\\x00"
  header data field = [size: 2B] [0xFF 0xFF] [payload CRC32: 4B]
  data blocks       = payload, padded with 0xFF to (span - 1) * BLOCK_SIZE

Header CRC32 covers header[0:4] + header[8:32]. The CRC field at [4:8]
never covers itself, but the whole data field (including a string's
payload CRC) is covered. Readers on the device rely on exactly this scope.

All validation happens before any buffer is exposed. A constructed NvsEntry
is complete and immutable; a failed one raises an NvsEntryError subclass.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Callable, Union

from nvs.checksum import crc32, pack_crc
from nvs.settings import (
    BLOCK_SIZE, KEY_FIELD_SIZE, MAX_KEY_LENGTH, MAX_STRING_SIZE,
    MAX_NAMESPACE_INDEX, CHUNK_INDEX_NONE, ERASED_BYTE,
    NAMESPACE_OFFSET, TYPE_OFFSET, SPAN_OFFSET, CHUNK_INDEX_OFFSET,
    CRC_OFFSET, KEY_OFFSET, DATA_OFFSET, DATA_FIELD_SIZE,
    STRING_SIZE_FMT, STRING_CRC_OFFSET, CRC_FMT, PRIMITIVE_FORMATS,
    NvsType, value_range, blocks_for,
)

logger = logging.getLogger(__name__)

Value = Union[int, str]
ChecksumFn = Callable[[bytes], int]


# ─── Errors ─────────────────────────────────────────────────────────────────

class NvsEntryError(ValueError):
    """Base class for entries that cannot be encoded."""
    pass


class KeyTooLongError(NvsEntryError):
    """Raised when a key exceeds MAX_KEY_LENGTH bytes."""
    pass


class TypeMismatchError(NvsEntryError):
    """Raised when a value's kind disagrees with the declared type."""
    pass


class ValueTooLargeError(NvsEntryError):
    """Raised when an encoded string exceeds MAX_STRING_SIZE bytes."""
    pass


class UnsupportedTypeError(NvsEntryError):
    """Raised for a type tag outside NvsType."""
    pass


class ValueOutOfRangeError(NvsEntryError):
    """Raised when a number does not fit its type or header byte."""
    pass


class InvalidKeyError(NvsEntryError):
    """Raised for an empty key or one with an embedded null byte."""
    pass


# ─── Input ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NvsKeyValue:
    """A logical key/value pair, not yet encoded."""
    namespace_index: int
    type: NvsType
    key: str
    data: Value


def _is_integer(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _resolve_type(type_tag: object) -> NvsType:
    if isinstance(type_tag, NvsType):
        return type_tag
    if not _is_integer(type_tag):
        raise UnsupportedTypeError(f"Unsupported NVS type: {type_tag!r}")
    try:
        return NvsType(type_tag)
    except ValueError:
        raise UnsupportedTypeError(f"Unsupported NVS type: 0x{type_tag:02X}")


# ─── Encoded entry ──────────────────────────────────────────────────────────

class NvsEntry:
    """
    The encoded form of one NvsKeyValue.

    Attributes are read-only. `header` is always BLOCK_SIZE bytes; `data` is
    (span - 1) * BLOCK_SIZE bytes and empty for primitive types. The caller
    writes header and data contiguously (see to_bytes) and owns placement.
    """

    def __init__(self, entry: NvsKeyValue, checksum: ChecksumFn = crc32):
        """
        Validate and encode an entry.

        Args:
            entry: The key/value pair to encode
            checksum: CRC32 function used for both header and payload CRCs

        Raises:
            KeyTooLongError, UnsupportedTypeError, TypeMismatchError,
            InvalidKeyError, ValueTooLargeError, ValueOutOfRangeError
        """
        self._checksum = checksum
        key_bytes = self._validate_key(entry.key)
        self._validate_namespace(entry.namespace_index)
        nvs_type = _resolve_type(entry.type)

        self._namespace_index = entry.namespace_index
        self._type = nvs_type
        self._key = entry.key
        self._value = entry.data
        self._chunk_index = CHUNK_INDEX_NONE

        header = bytearray(BLOCK_SIZE)
        header[DATA_OFFSET:DATA_OFFSET + DATA_FIELD_SIZE] = bytes([ERASED_BYTE]) * DATA_FIELD_SIZE

        if nvs_type == NvsType.STR:
            span, data = self._encode_string(header, entry.data)
        else:
            span, data = self._encode_primitive(header, nvs_type, entry.data)

        header[NAMESPACE_OFFSET] = self._namespace_index
        header[TYPE_OFFSET] = int(nvs_type)
        header[SPAN_OFFSET] = span
        header[CHUNK_INDEX_OFFSET] = self._chunk_index
        header[KEY_OFFSET:KEY_OFFSET + KEY_FIELD_SIZE] = key_bytes.ljust(KEY_FIELD_SIZE, b"\x00")

        header[CRC_OFFSET:KEY_OFFSET] = pack_crc(self._header_crc(header))

        self._span = span
        self._header = bytes(header)
        self._data = bytes(data)

        logger.debug("Encoded NVS entry %r (ns=%d, type=%s, span=%d)",
                     self._key, self._namespace_index, nvs_type.name, span)

    # ─── Validation ─────────────────────────────────────────────────

    @staticmethod
    def _validate_key(key: object) -> bytes:
        """Return the canonical key bytes: UTF-8 key plus null terminator."""
        if not isinstance(key, str):
            raise TypeMismatchError(f"NVS key must be text, got {type(key).__name__}")
        if not key:
            raise InvalidKeyError("NVS key cannot be empty")
        if "\0" in key:
            raise InvalidKeyError(f"NVS key {key!r} contains a null byte")
        encoded = key.encode("utf-8")
        if len(encoded) > MAX_KEY_LENGTH:
            raise KeyTooLongError(
                f"NVS max key length is {MAX_KEY_LENGTH}, received '{key}' "
                f"of length {len(encoded)}")
        return encoded + b"\x00"

    @staticmethod
    def _validate_namespace(namespace_index: object) -> None:
        if not _is_integer(namespace_index):
            raise TypeMismatchError(
                f"Namespace index must be an integer, got {namespace_index!r}")
        if not 0 <= namespace_index <= MAX_NAMESPACE_INDEX:
            raise ValueOutOfRangeError(
                f"Namespace index {namespace_index} outside 0..{MAX_NAMESPACE_INDEX}")

    # ─── Encoding ───────────────────────────────────────────────────

    def _encode_primitive(self, header: bytearray, nvs_type: NvsType,
                          value: object) -> tuple[int, bytes]:
        """Pack a number into the header data field. Span is always 1."""
        if not _is_integer(value):
            raise TypeMismatchError(
                f"NVS type {nvs_type.name} expects an integer, got {type(value).__name__}")
        low, high = value_range(nvs_type)
        if not low <= value <= high:
            raise ValueOutOfRangeError(
                f"Value {value} does not fit {nvs_type.name} ({low}..{high})")

        struct.pack_into(PRIMITIVE_FORMATS[nvs_type], header, DATA_OFFSET, value)
        return 1, b""

    def _encode_string(self, header: bytearray, value: object) -> tuple[int, bytearray]:
        """
        Build the data blocks for a string and fill the header data field
        with the payload size and CRC32. Returns (span, data_blocks).
        """
        if not isinstance(value, str):
            raise TypeMismatchError(
                f"NVS type STR expects text, got {type(value).__name__}")
        payload = (value + "\0").encode("utf-8")
        if len(payload) > MAX_STRING_SIZE:
            raise ValueTooLargeError(
                f"String values are limited to {MAX_STRING_SIZE} bytes, "
                f"got {len(payload)}")

        span = 1 + blocks_for(len(payload))
        data = bytearray([ERASED_BYTE]) * ((span - 1) * BLOCK_SIZE)
        data[:len(payload)] = payload

        struct.pack_into(STRING_SIZE_FMT, header, DATA_OFFSET, len(payload))
        header[STRING_CRC_OFFSET:STRING_CRC_OFFSET + 4] = pack_crc(self._checksum(payload))
        return span, data

    def _header_crc(self, header: Union[bytes, bytearray]) -> int:
        return header_crc(header, self._checksum)

    # ─── Properties ─────────────────────────────────────────────────

    @property
    def namespace_index(self) -> int:
        return self._namespace_index

    @property
    def type(self) -> NvsType:
        return self._type

    @property
    def key(self) -> str:
        return self._key

    @property
    def value(self) -> Value:
        return self._value

    @property
    def span(self) -> int:
        """Blocks occupied on flash, header included."""
        return self._span

    @property
    def chunk_index(self) -> int:
        return self._chunk_index

    @property
    def header(self) -> bytes:
        return self._header

    @property
    def data(self) -> bytes:
        return self._data

    # ─── Serialization & verification ───────────────────────────────

    def to_bytes(self) -> bytes:
        """Header followed by data blocks: span * BLOCK_SIZE bytes."""
        return self._header + self._data

    def compute_header_crc(self) -> int:
        return self._header_crc(self._header)

    def verify_header_crc(self) -> bool:
        """Self-check of this entry's header; see module-level verify_header_crc."""
        return verify_header_crc(self._header, self._checksum)

    def verify_data_crc(self) -> bool:
        """Self-check of this entry's payload; see module-level verify_data_crc."""
        return verify_data_crc(self._header, self._data, self._checksum)

    def __len__(self) -> int:
        return len(self._header) + len(self._data)

    def __repr__(self) -> str:
        return (f"NvsEntry(ns={self._namespace_index}, key={self._key!r}, "
                f"type={self._type.name}, span={self._span})")


# ─── Checksum verification ──────────────────────────────────────────────────

def header_crc(header: Union[bytes, bytearray], checksum: ChecksumFn = crc32) -> int:
    """CRC32 of header bytes [0:4] + [8:32], skipping the CRC field."""
    scope = bytes(header[:CRC_OFFSET]) + bytes(header[KEY_OFFSET:BLOCK_SIZE])
    return checksum(scope) & 0xFFFFFFFF


def verify_header_crc(header: bytes, checksum: ChecksumFn = crc32) -> bool:
    """
    Check the CRC stored in a header block against its contents.
    Works on any BLOCK_SIZE header, e.g. one read back after flashing;
    returns False for a block of the wrong size.
    """
    if len(header) != BLOCK_SIZE:
        return False
    stored = struct.unpack_from(CRC_FMT, header, CRC_OFFSET)[0]
    return stored == header_crc(header, checksum)


def verify_data_crc(header: bytes, data: bytes, checksum: ChecksumFn = crc32) -> bool:
    """
    Check a string header's size and payload CRC against its data blocks.
    Headers of other types carry no payload and always pass.
    """
    if len(header) != BLOCK_SIZE:
        return False
    if header[TYPE_OFFSET] != NvsType.STR:
        return True
    size = struct.unpack_from(STRING_SIZE_FMT, header, DATA_OFFSET)[0]
    if size > len(data):
        return False
    stored = struct.unpack_from(CRC_FMT, header, STRING_CRC_OFFSET)[0]
    return stored == checksum(bytes(data[:size])) & 0xFFFFFFFF


def encode_entry(namespace_index: int, nvs_type: NvsType, key: str,
                 data: Value, checksum: ChecksumFn = crc32) -> NvsEntry:
    """Encode a key/value pair without building an NvsKeyValue first."""
    return NvsEntry(NvsKeyValue(namespace_index, nvs_type, key, data), checksum=checksum)
