"""
NVS Entry Encoder
=================
Public API for encoding key/value pairs into NVS flash records.

Usage:
    from nvs import NvsEntry, NvsKeyValue, NvsType, encode_entry
    entry = encode_entry(1, NvsType.U32, "count", 42)
    flash_bytes = entry.to_bytes()
"""

from nvs.settings import BLOCK_SIZE, MAX_KEY_LENGTH, MAX_STRING_SIZE, NvsType, type_from_string
from nvs.checksum import crc32, esp_crc32
from nvs.entry import (
    NvsEntry, NvsKeyValue, encode_entry,
    NvsEntryError, KeyTooLongError, TypeMismatchError, ValueTooLargeError,
    UnsupportedTypeError, ValueOutOfRangeError, InvalidKeyError,
    verify_header_crc, verify_data_crc,
)

__all__ = [
    "BLOCK_SIZE", "MAX_KEY_LENGTH", "MAX_STRING_SIZE", "NvsType", "type_from_string",
    "crc32", "esp_crc32",
    "NvsEntry", "NvsKeyValue", "encode_entry",
    "NvsEntryError", "KeyTooLongError", "TypeMismatchError", "ValueTooLargeError",
    "UnsupportedTypeError", "ValueOutOfRangeError", "InvalidKeyError",
    "verify_header_crc", "verify_data_crc",
]
