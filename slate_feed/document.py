import logging
from typing import Any, Dict, Optional, Tuple

from google.cloud.firestore_v1.field_path import FieldPath

from .firestore_fields import FirestoreField
from .pydantic_compat import (
    BaseModel,
    ConfigDict,
    Field,
    get_model_config,
    get_model_fields,
    model_dump_compat,
    model_validate_compat,
)

logger = logging.getLogger(__name__)


class BaseDocument(BaseModel):
    """
    Base class for every stored entity.

    Instances are immutable snapshots of a stored document: stores and
    workflows hand out new instances (``model_copy``) instead of mutating the
    ones consumers already hold.
    """

    model_config = ConfigDict(
        **get_model_config(frozen=True, use_enum_values=True, extra="ignore")
    )

    # --------------------------------------------------------------------------
    # Default field (document ID)
    # --------------------------------------------------------------------------
    id: Optional[str] = Field(default=None)

    # --------------------------------------------------------------------------
    # Collection definition
    # --------------------------------------------------------------------------
    class Settings:
        name: str = "BaseCollection"  # Override in subclasses
        # Stored field names written with the server clock on insert.
        server_timestamps: Tuple[str, ...] = ()

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        cls.initialize_fields()

    @classmethod
    def initialize_fields(cls) -> None:
        """Expose every field as a :class:`FirestoreField` for filter building."""
        for field_name, field_info in get_model_fields(cls).items():
            alias = (
                FieldPath.document_id() if field_name == "id"
                else (field_info.alias or field_name)
            )
            setattr(cls, field_name, FirestoreField(alias, field_name))

    @classmethod
    def get_collection_name(cls) -> str:
        if hasattr(cls, "Settings") and hasattr(cls.Settings, "name"):
            return cls.Settings.name
        return cls.__name__

    @property
    def collection_name(self) -> str:
        return self.get_collection_name()

    @classmethod
    def server_timestamp_fields(cls) -> Tuple[str, ...]:
        return tuple(getattr(cls.Settings, "server_timestamps", ()))

    # --------------------------------------------------------------------------
    # (De)serialization
    # --------------------------------------------------------------------------
    def to_document(self, exclude_none: bool = True) -> Dict[str, Any]:
        """Stored representation: aliased keys, no ``id``, no unset optionals."""
        return model_dump_compat(
            self,
            exclude={"id"},
            exclude_none=exclude_none,
            by_alias=True,
        )

    @classmethod
    def from_document(cls, doc_id: str, data: Optional[Dict[str, Any]]) -> "BaseDocument":
        payload = dict(data or {})
        payload["id"] = doc_id
        return model_validate_compat(cls, payload)
