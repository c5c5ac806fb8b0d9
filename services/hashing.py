"""
MurmurHash3 (x86, 32-bit) used as the one canonical bucketing hash.

The same input always produces the same unsigned 32-bit value, in every
process and on every instance, so a user keeps their variant across restarts.
Strings are hashed as UTF-8 bytes.
"""

MASK_32 = 0xFFFFFFFF

C1 = 0xCC9E2D51
C2 = 0x1B873593

DEFAULT_SEED = 0


def _rotl32(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (32 - bits))) & MASK_32


def _mix_k1(k1: int) -> int:
    k1 = (k1 * C1) & MASK_32
    k1 = _rotl32(k1, 15)
    return (k1 * C2) & MASK_32


def _fmix32(h: int) -> int:
    """Final avalanche step."""
    h ^= h >> 16
    h = (h * 0x85EBCA6B) & MASK_32
    h ^= h >> 13
    h = (h * 0xC2B2AE35) & MASK_32
    h ^= h >> 16
    return h


def murmurhash3_32(key: str | bytes, seed: int = DEFAULT_SEED) -> int:
    """Hash `key` to an unsigned 32-bit integer."""
    data = key.encode("utf-8") if isinstance(key, str) else bytes(key)
    length = len(data)
    h1 = seed & MASK_32

    # body: 4-byte little-endian blocks
    rounded_end = length & ~0x3
    for i in range(0, rounded_end, 4):
        k1 = int.from_bytes(data[i:i + 4], "little")
        h1 ^= _mix_k1(k1)
        h1 = _rotl32(h1, 13)
        h1 = (h1 * 5 + 0xE6546B64) & MASK_32

    # tail
    tail = length & 0x3
    k1 = 0
    if tail == 3:
        k1 ^= data[rounded_end + 2] << 16
    if tail >= 2:
        k1 ^= data[rounded_end + 1] << 8
    if tail >= 1:
        k1 ^= data[rounded_end]
        h1 ^= _mix_k1(k1)

    h1 ^= length
    return _fmix32(h1)


def create_user_hash(value: str) -> int:
    """Deterministic bucketing hash for a (test id + user id) string."""
    return murmurhash3_32(value, DEFAULT_SEED)
