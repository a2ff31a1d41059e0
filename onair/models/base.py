"""Shared base for documents persisted in the document store."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class StoredModel(BaseModel):
    """Stored documents use camelCase keys; Python code uses snake_case."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    def to_document(self, include_id: bool = False) -> dict:
        """Serialize for the store, without unset optionals.

        The id is the store key of a top-level document and is left out.
        Embedded models (poll options, live snapshots) pass ``include_id=True``
        because their id only exists inside the document.
        """
        exclude = None if include_id else {"id"}
        return self.model_dump(by_alias=True, exclude=exclude, exclude_none=True, mode="json")

    def to_api(self) -> dict:
        """Serialize for API responses (includes the id)."""
        return self.model_dump(by_alias=True, mode="json")
