"""
Short-ID candidate strategies.

A strategy turns (url, salt) into a candidate ID. The IDAllocator asks with
no salt first, so a URL maps to its deterministic hash. When that candidate
is taken it retries with a random salt and the strategy hashes "url|salt"
instead, so a retry never walks a chain that earlier shortens already used.

Available (LINKTRAIL_CODE_STRATEGY):
    hash32       32-bit polynomial string hash in hex (default)
    sha256       SHA-256 digest in Base62, cut to LINKTRAIL_CODE_LENGTH
    hmac-sha256  same, keyed with LINKTRAIL_CODE_SECRET
    random       random Base62 of LINKTRAIL_CODE_LENGTH; ignores the salt

hash32 matches the hash the service has always used (base 31 over UTF-16
code units, wrapped to 32 bits) and renders it the same way, lowercase hex
without zero padding, so an unsalted URL maps to the same ID as the rows
already stored. Unlike Python's built-in hash() it is not salted per process.

LLM Prompt Example:
    "Show how a small strategy registry lets configuration pick between a
    legacy-compatible hash, keyed digests and random codes."
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from linktrail.config import settings

logger = logging.getLogger(__name__)

BASE62_ALPHABET = string.digits + string.ascii_lowercase + string.ascii_uppercase


def encode_base62(value: int) -> str:
    """
    Base62 rendering of a non-negative integer.

    >>> encode_base62(61), encode_base62(62)
    ('Z', '10')
    """
    if value < 0:
        raise ValueError("value must be non-negative")
    digits = []
    while True:
        value, rem = divmod(value, len(BASE62_ALPHABET))
        digits.append(BASE62_ALPHABET[rem])
        if not value:
            return "".join(reversed(digits))


def code_length(length: Optional[int] = None) -> int:
    """Requested length, else the configured one, kept within 4..32."""
    wanted = settings.CODE_LENGTH if length is None else int(length)
    return min(32, max(4, wanted))


def _payload(url: str, salt: str) -> str:
    return f"{url}|{salt}" if salt else url


def string_hash32(text: str) -> int:
    """
    Unsigned 32-bit polynomial hash: h = 31*h + unit over UTF-16 code units.

    >>> string_hash32("hello")
    99162322
    """
    data = text.encode("utf-16-be")
    h = 0
    for i in range(0, len(data), 2):
        h = (31 * h + ((data[i] << 8) | data[i + 1])) & 0xFFFFFFFF
    return h


class BaseStrategy(ABC):
    """Abstract candidate generator."""

    @abstractmethod
    def generate(self, url: str, salt: str = "", length: Optional[int] = None) -> str:  # pragma: no cover
        """Candidate ID for `url`; a non-empty `salt` gives a different candidate."""
        raise NotImplementedError


class Hash32Strategy(BaseStrategy):
    """Unpadded lowercase hex (at most 8 digits); `length` does not apply."""

    def generate(self, url: str, salt: str = "", length: Optional[int] = None) -> str:
        return "%x" % string_hash32(_payload(url, salt))


class _DigestStrategy(BaseStrategy):
    """Digest of url|salt, read as a big-endian integer, in Base62."""

    def digest(self, payload: bytes) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def generate(self, url: str, salt: str = "", length: Optional[int] = None) -> str:
        raw = self.digest(_payload(url, salt).encode("utf-8"))
        return encode_base62(int.from_bytes(raw, "big"))[: code_length(length)]


class SHA256Strategy(_DigestStrategy):
    def digest(self, payload: bytes) -> bytes:
        return hashlib.sha256(payload).digest()


@dataclass(frozen=True)
class HMACSHA256Strategy(_DigestStrategy):
    secret: str

    def digest(self, payload: bytes) -> bytes:
        return hmac.new(self.secret.encode("utf-8"), payload, hashlib.sha256).digest()


class RandomStrategy(BaseStrategy):
    """Uniqueness comes from the allocator's conditional claim, not from the code."""

    def generate(self, url: str, salt: str = "", length: Optional[int] = None) -> str:
        return "".join(secrets.choice(BASE62_ALPHABET) for _ in range(code_length(length)))


STRATEGY_FACTORIES: Dict[str, Callable[[], BaseStrategy]] = {
    "hash32": Hash32Strategy,
    "sha256": SHA256Strategy,
    "hmac-sha256": lambda: HMACSHA256Strategy(secret=settings.CODE_SECRET),
    "random": RandomStrategy,
}

STRATEGY_ALIASES = {"hash": "hash32", "sha-256": "sha256", "hmac": "hmac-sha256", "rand": "random"}


def get_strategy_from_config(name: Optional[str] = None) -> BaseStrategy:
    """
    Build the strategy named by `name` or settings.CODE_STRATEGY.

    Unknown names fall back to hash32 with a warning.
    """
    key = (name or settings.CODE_STRATEGY or "hash32").strip().lower()
    key = STRATEGY_ALIASES.get(key, key)
    if key not in STRATEGY_FACTORIES:
        logger.warning("Unknown code strategy %r, using hash32", key)
        key = "hash32"
    return STRATEGY_FACTORIES[key]()
