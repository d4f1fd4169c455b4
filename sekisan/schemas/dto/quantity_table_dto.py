from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from sekisan.models.quantity_group import QuantityGroup
from sekisan.models.quantity_item import QuantityItem
from sekisan.models.quantity_table import QuantityTable
from sekisan.services.calculation_method import visible_fields
from sekisan.utils.number_format import format_for_display


def _num(value: Optional[Decimal]) -> Optional[str]:
    # blank dimensions stay null
    return None if value is None else format_for_display(value)


class QuantityItemDTO(BaseModel):
    id: str
    quantity_group_id: Optional[str] = None
    display_order: int

    major_category: Optional[str] = None
    middle_category: Optional[str] = None
    minor_category: Optional[str] = None
    custom_category: Optional[str] = None
    work_type: Optional[str] = None
    name: Optional[str] = None
    specification: Optional[str] = None
    unit: Optional[str] = None
    remarks: Optional[str] = None

    calculation_method: str
    visible_fields: List[str]

    width: Optional[str] = None
    depth: Optional[str] = None
    height: Optional[str] = None
    weight: Optional[str] = None
    range_length: Optional[str] = None
    edge1: Optional[str] = None
    edge2: Optional[str] = None
    pitch_length: Optional[str] = None
    length: Optional[str] = None

    adjustment_factor: str
    rounding_unit: str
    manual_quantity: str
    quantity: str

    @classmethod
    def from_orm_model(cls, item: QuantityItem) -> "QuantityItemDTO":
        return cls(
            id=item.id,
            quantity_group_id=item.quantity_group_id,
            display_order=item.display_order,
            major_category=item.major_category,
            middle_category=item.middle_category,
            minor_category=item.minor_category,
            custom_category=item.custom_category,
            work_type=item.work_type,
            name=item.name,
            specification=item.specification,
            unit=item.unit,
            remarks=item.remarks,
            calculation_method=item.calculation_method.value,
            visible_fields=list(visible_fields(item.calculation_method)),
            width=_num(item.width),
            depth=_num(item.depth),
            height=_num(item.height),
            weight=_num(item.weight),
            range_length=_num(item.range_length),
            edge1=_num(item.edge1),
            edge2=_num(item.edge2),
            pitch_length=_num(item.pitch_length),
            length=_num(item.length),
            adjustment_factor=format_for_display(item.adjustment_factor),
            rounding_unit=format_for_display(item.rounding_unit),
            manual_quantity=format_for_display(item.manual_quantity),
            quantity=format_for_display(item.quantity),
        )


class QuantityGroupDTO(BaseModel):
    id: str
    name: Optional[str] = None
    display_order: int
    survey_image_id: Optional[str] = None
    has_annotation: bool
    items: List[QuantityItemDTO]

    @classmethod
    def from_orm_model(cls, group: QuantityGroup) -> "QuantityGroupDTO":
        return cls(
            id=group.id,
            name=group.name,
            display_order=group.display_order,
            survey_image_id=group.survey_image_id,
            has_annotation=bool(group.has_annotation),
            items=[QuantityItemDTO.from_orm_model(i) for i in group.items],
        )


class QuantityTableSummaryDTO(BaseModel):
    id: str
    project_id: str
    name: str
    version: int
    group_count: int
    item_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_orm_model(cls, table: QuantityTable) -> "QuantityTableSummaryDTO":
        return cls(
            id=table.id,
            project_id=table.project_id,
            name=table.name,
            version=table.version,
            group_count=len(table.groups),
            item_count=table.item_count(),
            created_at=table.created_at,
            updated_at=table.updated_at,
        )


class QuantityTableDTO(QuantityTableSummaryDTO):
    groups: List[QuantityGroupDTO]

    @classmethod
    def from_orm_model(cls, table: QuantityTable) -> "QuantityTableDTO":
        summary = QuantityTableSummaryDTO.from_orm_model(table)
        return cls(
            **summary.model_dump(),
            groups=[QuantityGroupDTO.from_orm_model(g) for g in table.groups],
        )
