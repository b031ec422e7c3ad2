"""Domain model package.

Entities are plain Pydantic models with no driver dependencies beyond the
BSON ObjectId used for identifiers.  Import from this package to avoid
coupling application code to individual module paths.
"""

from .entity import ID_FIELD, MODIFIED_ON_FIELD, ContentEntity, Entity

__all__ = [
    "Entity",
    "ContentEntity",
    "ID_FIELD",
    "MODIFIED_ON_FIELD",
]
