"""
The client module defines the contract of the backing store that holds the
cluster objects, and an in-memory implementation of it.

- Objects are addressed by NamespacedName and typed by their dataclass.
- "Not found" is reported as ObjectNotFoundError and every other failure as
  ClientException; retry logic depends on that distinction.

The in-memory client backs the command line tool and the tests.
"""

from .client import Client, ClientEvent
from .in_memory import InMemoryClient

__all__ = [
    "Client",
    "ClientEvent",
    "InMemoryClient",
]
