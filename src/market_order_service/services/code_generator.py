"""Short human-legible codes for tickets and orders."""

import logging
import random
from collections.abc import Callable
from typing import TypeVar

from market_order_service.errors import CodeCollisionError, ResourceExhaustedError
from market_order_service.models.order_models import CodeKind
from market_order_service.observability.metrics import (
    record_code_collision,
    record_code_exhaustion,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CODE_MIN = 1000
CODE_MAX = 9999
DEFAULT_MAX_ATTEMPTS = 5


class CodeGenerator:
    """Generates codes like ``WL-4821`` and allocates them with bounded retry.

    Codes are not unique by construction. Uniqueness comes from the store:
    ``allocate`` hands each candidate to a claim function that raises
    CodeCollisionError when the code is taken, and tries a fresh candidate
    up to ``max_attempts`` times.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            max_attempts: Candidates tried per allocation before giving up
            rng: Random source; a fresh random.Random by default
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.max_attempts = max_attempts
        self.rng = rng or random.Random()

    def generate(self, prefix: str) -> str:
        """Return ``<PREFIX>-<NNNN>`` with NNNN uniform in [1000, 9999]."""
        return f"{prefix}-{self.rng.randint(CODE_MIN, CODE_MAX)}"

    def allocate(self, prefix: str, kind: CodeKind, claim: Callable[[str], T]) -> T:
        """Generate codes until ``claim`` accepts one.

        Args:
            prefix: Code prefix for the namespace
            kind: Namespace, used for logging and metrics
            claim: Persists the entity under the candidate code and returns it;
                raises CodeCollisionError when the code is already taken

        Returns:
            Whatever ``claim`` returned for the accepted code

        Raises:
            ResourceExhaustedError: If every attempt collided
        """
        for attempt in range(1, self.max_attempts + 1):
            code = self.generate(prefix)
            try:
                return claim(code)
            except CodeCollisionError:
                record_code_collision(kind.value)
                logger.warning(
                    f"{kind.value} code {code} already allocated "
                    f"(attempt {attempt}/{self.max_attempts})"
                )

        record_code_exhaustion(kind.value)
        logger.error(f"Gave up allocating a {kind.value} code after {self.max_attempts} attempts")
        raise ResourceExhaustedError(f"Could not allocate a {kind.value} code.")
