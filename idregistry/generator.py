"""
Timestamp-first identifier generation.

The leading 48 bits count 100-microsecond ticks since the Unix epoch so identifiers
sort close to creation order; the rest comes from the secure random source.
Version (4) and variant bits are set as for a random UUID.
"""

import secrets
import time
from typing import Callable, List, Optional

from .identifiers import IDENTIFIER_LENGTH

_TICK_NS = 100_000
_TIMESTAMP_MASK = (1 << 48) - 1


class IdentifierGenerator:
    """Stateless producer of timestamp-first random identifiers."""

    def __init__(
        self,
        clock: Optional[Callable[[], int]] = None,
        random_bytes: Optional[Callable[[int], bytes]] = None,
    ):
        """
        Args:
            clock: Returns the current time in nanoseconds (default: time.time_ns)
            random_bytes: Returns n secure random bytes (default: secrets.token_bytes)
        """
        self._clock = clock or time.time_ns
        self._random_bytes = random_bytes or secrets.token_bytes

    def generate(self) -> bytes:
        ticks = (self._clock() // _TICK_NS) & _TIMESTAMP_MASK
        raw = bytearray(self._random_bytes(IDENTIFIER_LENGTH))
        raw[0:6] = ticks.to_bytes(6, "big")
        raw[6] = (raw[6] & 0x0F) | 0x40
        raw[8] = (raw[8] & 0x3F) | 0x80
        return bytes(raw)

    def generate_batch(self, n: int) -> List[bytes]:
        """
        Generate n identifiers, ordered ascending.

        Args:
            n: Number of identifiers to produce

        Returns:
            List of 16-byte identifiers
        """
        if n < 0:
            raise ValueError(f"Batch size must be non-negative, got {n}")
        return sorted(self.generate() for _ in range(n))
