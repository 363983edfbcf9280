"""Time-ordered push keys for store-assigned child identifiers.

A push key is 20 characters: 8 encode the millisecond timestamp, the
remaining 12 are random. Keys generated later sort after keys generated
earlier, including keys generated within the same millisecond.
"""

import random
import threading
import time
from typing import Callable, List, Optional

# ASCII-ordered so that string comparison matches generation order
PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"

TIMESTAMP_LENGTH = 8
RANDOM_LENGTH = 12


class PushKeyGenerator:
    """Generate strictly increasing push keys.

    Example:
        generator = PushKeyGenerator()
        first = generator.generate()
        second = generator.generate()
        assert first < second
    """

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the generator.

        Args:
            clock: Returns the current time in seconds (defaults to time.time)
            rng: Random source (defaults to a SystemRandom instance)
        """
        self._clock = clock or time.time
        self._rng = rng or random.SystemRandom()
        self._last_time = -1
        self._last_random: List[int] = [0] * RANDOM_LENGTH
        self._lock = threading.Lock()

    def generate(self) -> str:
        """Return the next push key."""
        with self._lock:
            now = int(self._clock() * 1000)
            duplicate = now == self._last_time
            self._last_time = now

            stamp = []
            remaining = now
            for _ in range(TIMESTAMP_LENGTH):
                stamp.append(PUSH_CHARS[remaining % 64])
                remaining //= 64
            stamp.reverse()

            if not duplicate:
                self._last_random = [
                    self._rng.randrange(64) for _ in range(RANDOM_LENGTH)
                ]
            else:
                # Same millisecond: increment the random part, carrying over 63s
                i = RANDOM_LENGTH - 1
                while i >= 0 and self._last_random[i] == 63:
                    self._last_random[i] = 0
                    i -= 1
                if i >= 0:
                    self._last_random[i] += 1

            return "".join(stamp) + "".join(
                PUSH_CHARS[value] for value in self._last_random
            )


_default_generator = PushKeyGenerator()


def generate_push_key() -> str:
    """Generate a push key from the shared module-level generator."""
    return _default_generator.generate()
