"""
Shared base for persisted documents.

Documents are stored with camelCase keys (``familyId``, ``addedBy``,
``invitedEmail``) while Python code uses snake_case attributes.
"""

from typing import Annotated, Any, Optional, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


DocumentT = TypeVar("DocumentT", bound="DocumentModel")


def _coerce_id(v: Any) -> Any:
    # Records created before sign-in used numeric ids; the store uses strings.
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(int(v))
    return v


DocumentId = Annotated[Optional[str], BeforeValidator(_coerce_id)]


class DocumentModel(BaseModel):
    """
    Immutable model that round-trips through a document store.

    The ``id`` attribute (when a model has one) is the document id and is
    never written into the document body.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        str_strip_whitespace=True,
    )

    def to_document(self) -> dict[str, Any]:
        """Serialize for storage (camelCase, JSON-compatible values, no id)."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude={"id"},
            exclude_none=True,
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize including the id, for local storage and exports."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_document(
        cls: type[DocumentT],
        doc_id: Optional[str],
        data: dict[str, Any],
    ) -> DocumentT:
        """Build a model from a stored document body and its id."""
        if doc_id is None:
            return cls.model_validate(data)
        return cls.model_validate({**data, "id": doc_id})
