# packwarden/core/hashing.py
from __future__ import annotations

import hashlib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from packwarden.core.errors import UnsupportedHashFormatError

__all__ = [
    "HashProvider", "HashlibProvider", "registerHashProvider", "getHashProvider",
    "knownHashFormats", "hashBytes", "hashFile", "preferredHash", "CHUNK_SIZE",
]

CHUNK_SIZE = 64 * 1024

# Strongest first; used to pick which of a catalog file's digests to record
_PREFERRED_ORDER: tuple[str, ...] = ("sha512", "sha256", "sha1")



class HashProvider(Protocol):
    name: str

    def new(self) -> Any: ...

    def toString(self, digest: bytes) -> str: ...



@dataclass(frozen=True, slots=True)
class HashlibProvider:
    """HashProvider backed by a hashlib constructor. Digests encode as lowercase hex."""
    name: str
    factory: Callable[[], Any]

    def new(self) -> Any:
        return self.factory()

    def toString(self, digest: bytes) -> str:
        return digest.hex()



_PROVIDERS: dict[str, HashProvider] = {
    "sha1": HashlibProvider("sha1", hashlib.sha1),
    "sha256": HashlibProvider("sha256", hashlib.sha256),
    "sha512": HashlibProvider("sha512", hashlib.sha512),
    "md5": HashlibProvider("md5", hashlib.md5),
}



def registerHashProvider(provider: HashProvider, *, overwrite: bool = False) -> None:
    key = provider.name.strip().lower()
    if key in _PROVIDERS and not overwrite:
        raise ValueError(f"Hash provider '{key}' is already registered")
    _PROVIDERS[key] = provider



def getHashProvider(name: str) -> HashProvider:
    provider = _PROVIDERS.get(str(name or "").strip().lower())
    if provider is None:
        raise UnsupportedHashFormatError(
            f"Unsupported hash format '{name}'. Known formats: {', '.join(sorted(_PROVIDERS))}"
        )
    return provider



def knownHashFormats() -> list[str]:
    return sorted(_PROVIDERS)



def hashBytes(data: bytes, fmt: str) -> str:
    provider = getHashProvider(fmt)
    hasher = provider.new()
    hasher.update(data)
    return provider.toString(hasher.digest())



def hashFile(path: str | Path, fmt: str) -> str:
    """Hash a file in CHUNK_SIZE reads. OSError from open/read propagates to the caller."""
    provider = getHashProvider(fmt)
    hasher = provider.new()
    with Path(path).open("rb") as file:
        for chunk in iter(lambda: file.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
    return provider.toString(hasher.digest())



def preferredHash(hashes: Mapping[str, str] | None) -> tuple[str, str] | None:
    """Returns (format, value) for the strongest digest present, or None."""
    if not hashes:
        return None
    for fmt in _PREFERRED_ORDER:
        value = hashes.get(fmt)
        if value:
            return fmt, value
    return None
