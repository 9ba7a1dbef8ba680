"""
Error taxonomy for identifier allocation and backfill.

Storage errors raised by SQLAlchemy are translated at the edge of every
query through storage_errors(), keeping the original exception chained.
"""

from contextlib import contextmanager
from typing import Iterable, Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError


class IdRegistryError(Exception):
    """Base class for all idregistry errors."""
    pass


class StorageFailure(IdRegistryError):
    """Raised when a query or statement against the storage driver fails."""
    pass


class ConstraintViolation(StorageFailure):
    """Raised when a storage-level uniqueness constraint rejects a write."""
    pass


class RetryError(IdRegistryError):
    """Raised when all retry attempts are exhausted."""
    pass


class AllocationExhausted(RetryError):
    """Raised when collision retries are exceeded; the random source is suspect."""
    pass


class MalformedIdentifier(IdRegistryError, ValueError):
    """Raised when an identifier string or binary value cannot be decoded."""
    pass


class ConfigError(IdRegistryError, ValueError):
    """Raised when an IDREGISTRY_* setting cannot be parsed."""
    pass


class DescriptorError(IdRegistryError, ValueError):
    """Raised when a table descriptor is not usable."""

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class CollisionDetected(Exception):
    """A candidate batch contained identifiers that are already in use."""

    def __init__(self, collided: Iterable[bytes]):
        self.collided = set(collided)
        super().__init__(f"{len(self.collided)} identifier(s) already in use")


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """
    Translate SQLAlchemy errors raised inside the block.

    Args:
        action: Short description used as the error message prefix
    """
    try:
        yield
    except IntegrityError as e:
        raise ConstraintViolation(f"{action}: {e.orig}") from e
    except SQLAlchemyError as e:
        raise StorageFailure(f"{action}: {e}") from e
