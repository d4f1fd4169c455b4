from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from sekisan.models.itemized_statement import ItemizedStatement, ItemizedStatementItem
from sekisan.services.itemized_statement_pivot_service import generate_group_key
from sekisan.utils.number_format import format_for_display


class ItemizedStatementItemDTO(BaseModel):
    id: str
    group_key: str
    custom_category: Optional[str] = None
    work_type: Optional[str] = None
    name: Optional[str] = None
    specification: Optional[str] = None
    unit: Optional[str] = None
    quantity: str
    display_order: int

    @classmethod
    def from_orm_model(cls, item: ItemizedStatementItem) -> "ItemizedStatementItemDTO":
        return cls(
            id=item.id,
            group_key=generate_group_key(item),
            custom_category=item.custom_category,
            work_type=item.work_type,
            name=item.name,
            specification=item.specification,
            unit=item.unit,
            quantity=format_for_display(item.quantity),
            display_order=item.display_order,
        )


class ItemizedStatementSummaryDTO(BaseModel):
    id: str
    project_id: str
    name: str
    source_quantity_table_id: str
    source_quantity_table_name: str
    item_count: int
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_orm_model(cls, statement: ItemizedStatement) -> "ItemizedStatementSummaryDTO":
        return cls(
            id=statement.id,
            project_id=statement.project_id,
            name=statement.name,
            source_quantity_table_id=statement.source_quantity_table_id,
            source_quantity_table_name=statement.source_quantity_table_name,
            item_count=statement.item_count,
            version=statement.version,
            created_at=statement.created_at,
            updated_at=statement.updated_at,
        )


class ItemizedStatementDTO(ItemizedStatementSummaryDTO):
    items: List[ItemizedStatementItemDTO]

    @classmethod
    def from_orm_model(cls, statement: ItemizedStatement) -> "ItemizedStatementDTO":
        summary = ItemizedStatementSummaryDTO.from_orm_model(statement)
        return cls(
            **summary.model_dump(),
            items=[ItemizedStatementItemDTO.from_orm_model(i) for i in statement.items],
        )
