"""
ID generation for budget entities

Categories, subcategories, expenses and income entries get opaque random
identifiers. Months are keyed by their "YYYY-MM" id instead and never go
through an IdFactory.
"""

import itertools
import uuid
from typing import Protocol


class IdFactory(Protocol):
    """Protocol for ID generation strategies"""

    def generate(self) -> str:
        """Generate a new unique ID"""
        ...


def generate_id() -> str:
    """Generate a random UUID4 string"""
    return str(uuid.uuid4())


class DefaultIdFactory:
    """Default ID factory using random UUIDs"""

    def generate(self) -> str:
        return generate_id()


class SequentialIdFactory:
    """
    Deterministic ID factory for tests and fixtures

    Produces "<prefix>-1", "<prefix>-2", ... so assertions can name ids.
    """

    def __init__(self, prefix: str = "id") -> None:
        self.prefix = prefix
        self._counter = itertools.count(1)

    def generate(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


# Global default factory
default_id_factory = DefaultIdFactory()
