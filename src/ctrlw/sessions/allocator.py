"""Pairing code allocation.

Codes are drawn uniformly from 000000-999999. With N codes already active a
single draw collides with probability N / 1,000,000, so a handful of retries
is plenty in practice; the retry count is still bounded so a saturated code
space fails fast with ExhaustionError instead of spinning.

Uniqueness is never pre-checked. Two concurrent allocations can both see a
code as free, so the check happens inside ``claim``, which must perform an
atomic insert-with-uniqueness and raise ConflictError on a collision.
"""

import logging
import secrets
from typing import Awaitable, Callable, Optional, TypeVar

from ctrlw.errors import ConflictError, ExhaustionError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CODE_SPACE = 1_000_000
CODE_LENGTH = 6
DEFAULT_MAX_RETRIES = 10


class PairingCodeAllocator:
    """Produces collision-free 6-digit pairing codes."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        randbelow: Callable[[int], int] = secrets.randbelow,
    ):
        """Initialize allocator.

        Args:
            max_retries: Default number of claim attempts per allocation.
            randbelow: Source of uniform integers in [0, n) (for testing).
        """
        if max_retries < 1:
            raise ValidationError("max_retries must be at least 1")
        self.max_retries = max_retries
        self._randbelow = randbelow

    def draw(self) -> str:
        """Draw a zero-padded 6-digit code."""
        return f"{self._randbelow(CODE_SPACE):0{CODE_LENGTH}d}"

    async def allocate(
        self,
        claim: Callable[[str], Awaitable[T]],
        max_retries: Optional[int] = None,
    ) -> T:
        """Draw codes until ``claim`` accepts one.

        Args:
            claim: Atomically reserves a code; raises ConflictError if the
                code is already held by an active session.
            max_retries: Override the allocator's default attempt count.

        Returns:
            Whatever ``claim`` returned for the accepted code.

        Raises:
            ExhaustionError: After ``max_retries`` collisions.
        """
        attempts = self.max_retries if max_retries is None else max_retries
        if attempts < 1:
            raise ValidationError("max_retries must be at least 1")

        for attempt in range(attempts):
            code = self.draw()
            try:
                return await claim(code)
            except ConflictError:
                logger.debug(f"Pairing code collision (attempt {attempt + 1}/{attempts})")

        logger.error(f"Pairing code allocation exhausted after {attempts} attempts")
        raise ExhaustionError(
            f"Could not allocate a unique pairing code after {attempts} attempts"
        )
