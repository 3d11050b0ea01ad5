"""
The cache module provides the typed, identity-keyed staging area that
providers populate during one reconcile pass.

- Uses ResourceIdentity (provider, purpose, type, cardinality) as the key for
  every slot of desired state.
- Stores values as dataclass instances from manifest.py for type safety.
- Commits the whole pass to the backing store with a best-effort upsert.
"""

from .identity import Cardinality, ResourceIdentity
from .object_cache import ApplyOperation, ApplyResult, ObjectCache

__all__ = [
    "Cardinality",
    "ResourceIdentity",
    "ApplyOperation",
    "ApplyResult",
    "ObjectCache",
]
