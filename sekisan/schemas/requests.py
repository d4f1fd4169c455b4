"""Request bodies of the JSON API."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ProjectCreateRequest(BaseModel):
    name: str


class QuantityTableCreateRequest(BaseModel):
    name: str


class VersionedRequest(BaseModel):
    expected_version: int


class RenameRequest(VersionedRequest):
    name: str


class GroupCreateRequest(VersionedRequest):
    name: Optional[str] = None
    survey_image_id: Optional[str] = None


class GroupUpdateRequest(VersionedRequest):
    name: Optional[str] = None
    survey_image_id: Optional[str] = None
    has_annotation: Optional[bool] = None

    def updates(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"expected_version"})


class MoveRequest(VersionedRequest):
    target_index: int = Field(ge=0)
    target_group_id: Optional[str] = None


class ItemCreateRequest(VersionedRequest):
    fields: Dict[str, Any] = Field(default_factory=dict)


class ItemUpdateRequest(VersionedRequest):
    # numeric values may be sent as text ("12.5"); they go through the number parser
    updates: Dict[str, Any]


class BulkSaveRequest(VersionedRequest):
    items: List[Dict[str, Any]]


class BulkCopyRequest(VersionedRequest):
    item_ids: List[str] = Field(min_length=1)


class BulkMoveRequest(VersionedRequest):
    item_ids: List[str] = Field(min_length=1)
    target_group_id: str
    target_index: int = Field(ge=0)


class StatementCreateRequest(BaseModel):
    quantity_table_id: str
    name: str
