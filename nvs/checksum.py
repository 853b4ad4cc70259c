"""
NVS Checksums
=============
CRC32 primitives used for header and string payload integrity.

crc32 is the standard CRC-32 (zlib polynomial 0xEDB88320, reflected).
esp_crc32 seeds the same polynomial with 0xFFFFFFFF, which is what the
ESP-IDF partition generator feeds its ROM routine. Both return unsigned
32-bit integers; pack_crc gives the little-endian on-flash form.
"""

import zlib

from nvs.settings import CRC_STRUCT

ESP_CRC_SEED = 0xFFFFFFFF


def crc32(data: bytes) -> int:
    """Standard CRC-32 of data."""
    return zlib.crc32(data) & 0xFFFFFFFF


def esp_crc32(data: bytes) -> int:
    """CRC-32 of data seeded with 0xFFFFFFFF."""
    return zlib.crc32(data, ESP_CRC_SEED) & 0xFFFFFFFF


def pack_crc(value: int) -> bytes:
    return CRC_STRUCT.pack(value & 0xFFFFFFFF)
