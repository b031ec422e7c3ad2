"""Entity base model.

Every type managed by a repository derives from Entity.  The identifier is
a BSON ObjectId rendered as a 24-character hex string; it is generated on
construction and never reassigned.  Because an ObjectId embeds its creation
second, created_on is derived from the id rather than stored.

modified_on is written by the store itself ($currentDate) on every update,
so its value always comes from the server clock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

ID_FIELD = "_id"
MODIFIED_ON_FIELD = "_m"


class Entity(BaseModel):
    """Base class for persisted documents.

    Extra fields found in stored documents are ignored on read, so older
    documents keep loading after a field is removed from the model.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(
        default_factory=lambda: str(ObjectId()),
        alias=ID_FIELD,
        frozen=True,
    )
    modified_on: datetime | None = Field(default=None, alias=MODIFIED_ON_FIELD)

    @field_validator("id", mode="before")
    @classmethod
    def _object_id_to_str(cls, value: Any) -> Any:
        if isinstance(value, ObjectId):
            return str(value)
        return value

    @field_validator("id")
    @classmethod
    def _must_be_object_id(cls, value: str) -> str:
        if not ObjectId.is_valid(value):
            raise ValueError(f"{value!r} is not a valid ObjectId")
        return value

    @property
    def object_id(self) -> ObjectId:
        return ObjectId(self.id)

    @property
    def created_on(self) -> datetime:
        """Creation time decoded from the id (UTC, one-second resolution)."""
        return self.object_id.generation_time

    def to_document(self) -> dict[str, Any]:
        """Return the BSON-ready document for this entity."""
        document = self.model_dump(by_alias=True)
        document[ID_FIELD] = self.object_id
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Entity:
        return cls.model_validate(document)

    @classmethod
    def stored_name(cls, field: str) -> str:
        """Map a model field name to the key it is stored under.

        Dotted paths map only their first segment; unknown names pass
        through unchanged so callers can address untyped sub-documents.
        """
        head, sep, rest = field.partition(".")
        info = cls.model_fields.get(head)
        if info is not None and info.alias:
            head = info.alias
        return head + sep + rest


C = TypeVar("C")


class ContentEntity(Entity, Generic[C]):
    """Entity wrapping a model that cannot itself derive from Entity.

    The wrapped model is stored as a sub-document under "content", so its
    fields are addressed as "content.<field>" in filters and updates.
    The parametrized type's default collection name is its full name
    (e.g. "contententity[address]"); subclass it or register a collection
    name to choose another.
    """

    content: C
