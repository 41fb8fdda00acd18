"""
Payload generation for write operations.
"""

import random

from s3loadgen.configuration import PAYLOAD_ALPHABET


class PayloadGenerator:
    """Produces fresh printable payloads of a fixed size.

    Random bytes are mapped onto the alphabet through a 256-entry translation
    table, which keeps generation O(size) in C instead of a per-byte Python
    loop. Bytes at or above the largest multiple of the alphabet length are
    deleted during translation, so every alphabet position is equally likely.
    Content is not cryptographically random.
    """

    def __init__(self, alphabet: bytes = PAYLOAD_ALPHABET, rng: random.Random = None):
        if not alphabet:
            raise ValueError("Payload alphabet must not be empty")
        if len(alphabet) > 256:
            raise ValueError(f"Payload alphabet must have at most 256 symbols, got {len(alphabet)}")
        self._limit = 256 - 256 % len(alphabet)
        self._table = bytes(alphabet[i % len(alphabet)] for i in range(256))
        self._rejected = bytes(range(self._limit, 256))
        self._rng = rng or random.Random()

    def generate(self, size: int) -> bytes:
        """Return ``size`` bytes of new content; nothing is cached between calls."""
        if size < 0:
            raise ValueError(f"Payload size must be >= 0, got {size}")

        payload = bytearray()
        while len(payload) < size:
            missing = size - len(payload)
            # Oversample so one pass is nearly always enough
            raw = self._rng.randbytes(missing * 256 // self._limit + 64)
            payload += raw.translate(self._table, self._rejected)
        return bytes(payload[:size])
