"""
Batch allocation.

Draws batches from the generator until one passes the uniqueness probe.
A collision discards the whole batch; collisions should never happen with a
healthy random source, so the number of redraws is capped.
"""

from typing import List

from .config import MAX_COLLISION_RETRIES
from .descriptor import TableDescriptor
from .errors import AllocationExhausted, CollisionDetected
from .generator import IdentifierGenerator
from .logger import StructuredLogger, get_logger
from .probe import UniquenessProbe
from .retry import exponential_backoff


class BatchAllocator:
    """Produces batches of identifiers that are free at call time."""

    def __init__(
        self,
        probe: UniquenessProbe,
        generator: IdentifierGenerator = None,
        max_retries: int = MAX_COLLISION_RETRIES,
        logger: StructuredLogger = None,
    ):
        self.probe = probe
        self.generator = generator or IdentifierGenerator()
        self.max_retries = max_retries
        self.logger = logger or get_logger()

    def allocate(self, n: int, descriptor: TableDescriptor) -> List[bytes]:
        """
        Allocate n identifiers unused in the registry and the owning table.

        Args:
            n: Number of identifiers
            descriptor: Table the identifiers are for

        Returns:
            n pairwise distinct identifiers, ascending

        Raises:
            AllocationExhausted: If every redraw collided
            StorageFailure: If the probe cannot query storage
        """
        if n <= 0:
            return []

        draw = exponential_backoff(
            max_retries=self.max_retries,
            base_delay=0,
            exceptions=(CollisionDetected,),
            on_retry=lambda attempt, exc, delay: self._on_collision(descriptor, attempt, exc),
            exhausted=AllocationExhausted,
        )(self._draw)

        batch = draw(n, descriptor)
        self.logger.record_allocation(len(batch))
        return batch

    def _draw(self, n: int, descriptor: TableDescriptor) -> List[bytes]:
        batch = self.generator.generate_batch(n)
        seen, duplicates = set(), set()
        for identifier in batch:
            (duplicates if identifier in seen else seen).add(identifier)
        if duplicates:
            raise CollisionDetected(duplicates)
        existing = self.probe.find_existing(batch, descriptor)
        if existing:
            raise CollisionDetected(existing)
        return batch

    def _on_collision(self, descriptor: TableDescriptor, attempt: int, exc: CollisionDetected):
        self.logger.record_collision(len(exc.collided))
        self.logger.warning(
            "Identifier collision, regenerating batch",
            table=descriptor.table_name,
            attempt=attempt,
            collided=len(exc.collided),
        )
