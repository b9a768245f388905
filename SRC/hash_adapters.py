"""Hash adapters for the consistent hashing ring.
- An adapter hashes bytes into a totally ordered value and compares two such values
- The ring only orders positions through `compare`, so values need not be integers
- Reference adapters: MD5 (int and hex), CRC32, xxh3_64, MurmurHash3
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Protocol
import hashlib
import zlib

import mmh3
import xxhash


class HashAdapter(Protocol):
    def hash(self, data: bytes) -> Any:
        ...

    def compare(self, a: Any, b: Any) -> int:
        ...


def _require_bytes(data: bytes) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"expected bytes, got {type(data).__name__}")
    return bytes(data)


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


class IntegerHashAdapter:
    """Mixin for adapters whose hash values are unsigned integers, ordered numerically.

    Subclasses supply `hash` and the value width in `bits`.
    """
    bits: int = 0

    def compare(self, a: int, b: int) -> int:
        return _cmp(a, b)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Md5Adapter(IntegerHashAdapter):
    """MD5 digest read as a big-endian unsigned 128-bit integer."""
    bits = 128

    def hash(self, data: bytes) -> int:
        return int.from_bytes(hashlib.md5(_require_bytes(data)).digest(), "big")


class Md5HexAdapter:
    """MD5 hex digest, ordered lexicographically.

    Lowercase fixed-width hex sorts the same way as the digest integer, so a
    ring built with this adapter places nodes exactly like `Md5Adapter`.
    """

    def hash(self, data: bytes) -> str:
        return hashlib.md5(_require_bytes(data)).hexdigest()

    def compare(self, a: str, b: str) -> int:
        return _cmp(a, b)

    def __repr__(self) -> str:
        return "Md5HexAdapter()"


class Crc32Adapter(IntegerHashAdapter):
    bits = 32

    def hash(self, data: bytes) -> int:
        return zlib.crc32(_require_bytes(data)) & 0xFFFFFFFF


class XxHashAdapter(IntegerHashAdapter):
    """xxh3_64 as an unsigned 64-bit integer, optionally seeded."""
    bits = 64

    def __init__(self, seed: int = 0):
        self.seed = seed

    def hash(self, data: bytes) -> int:
        return xxhash.xxh3_64_intdigest(_require_bytes(data), seed=self.seed)

    def __repr__(self) -> str:
        return f"XxHashAdapter(seed={self.seed})"


class Murmur3Adapter(IntegerHashAdapter):
    """MurmurHash3 (x86, 32-bit) as an unsigned integer."""
    bits = 32

    def __init__(self, seed: int = 0):
        self.seed = seed

    def hash(self, data: bytes) -> int:
        return mmh3.hash(_require_bytes(data), self.seed, signed=False)

    def __repr__(self) -> str:
        return f"Murmur3Adapter(seed={self.seed})"


_ADAPTERS: Dict[str, Callable[..., HashAdapter]] = {
    "md5": Md5Adapter,
    "md5-hex": Md5HexAdapter,
    "crc32": Crc32Adapter,
    "xxh3": XxHashAdapter,
    "murmur3": Murmur3Adapter,
}


def available_adapters() -> List[str]:
    return sorted(_ADAPTERS)


def get_adapter(name: str, **options: Any) -> HashAdapter:
    """Build an adapter by name, e.g. ``get_adapter("xxh3", seed=7)``."""
    try:
        factory = _ADAPTERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown hash adapter {name!r}, expected one of {', '.join(available_adapters())}"
        ) from None
    return factory(**options)
