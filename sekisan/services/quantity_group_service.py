from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from sekisan.exceptions import FieldValidationError
from sekisan.models.quantity_group import QuantityGroup
from sekisan.services.audit_log_service import AuditLogService
from sekisan.services.quantity_table_service import QuantityTableService

GROUP_NAME_MAX_LENGTH = 200


class QuantityGroupService:
    """
    Groups of a quantity table: add, edit name / photo link, remove, reorder.
    Every call checks and bumps the table version.
    """

    def __init__(
        self,
        db: Session,
        audit_log_service: AuditLogService,
        quantity_table_service: QuantityTableService,
    ):
        self.db = db
        self.audit_log_service = audit_log_service
        self.quantity_table_service = quantity_table_service

    def _check_name(self, name: Optional[str]) -> Optional[str]:
        if name is not None and len(name) > GROUP_NAME_MAX_LENGTH:
            raise FieldValidationError([{
                "field": "name",
                "message": f"グループ名は{GROUP_NAME_MAX_LENGTH}文字以内で入力してください",
                "value": name,
            }])
        return name

    def add_group(
        self,
        *,
        table_id: str,
        expected_version: int,
        operator_id: str,
        name: Optional[str] = None,
        survey_image_id: Optional[str] = None,
    ) -> QuantityGroup:
        table = self.quantity_table_service.get_table(table_id)
        table.check_version(expected_version)

        group = table.add_group(name=self._check_name(name), survey_image_id=survey_image_id)
        table.bump_version()
        self.db.flush()

        self.audit_log_service.record_create(
            project_id=table.project_id,
            entity_type="quantity_group",
            entity_id=group.id,
            operator_id=operator_id,
        )
        return group

    def update_group(
        self,
        *,
        table_id: str,
        group_id: str,
        updates: Dict[str, Any],
        expected_version: int,
        operator_id: str,
    ) -> QuantityGroup:
        '''
        Edit name, survey_image_id or has_annotation of a group.
        Unlinking the photo (survey_image_id=None) also clears has_annotation.
        '''
        allowed_fields = {"name", "survey_image_id", "has_annotation"}
        unknown = sorted(set(updates) - allowed_fields)
        if unknown:
            raise FieldValidationError([
                {"field": f, "message": f"Field '{f}' is not editable", "value": updates[f]} for f in unknown
            ])

        table = self.quantity_table_service.get_table(table_id)
        table.check_version(expected_version)
        group = table.find_group(group_id)

        if "name" in updates:
            self._check_name(updates["name"])
        if "survey_image_id" in updates and updates["survey_image_id"] is None:
            updates = {**updates, "has_annotation": False}

        changed = False
        for field, new_value in updates.items():
            old_value = getattr(group, field)
            if old_value == new_value:
                continue
            setattr(group, field, bool(new_value) if field == "has_annotation" else new_value)
            changed = True
            self.audit_log_service.record_update(
                project_id=table.project_id,
                entity_type="quantity_group",
                entity_id=group.id,
                changed_attribute=field,
                before_value=old_value,
                after_value=new_value,
                operator_id=operator_id,
            )

        if changed:
            table.bump_version()
        self.db.flush()
        return group

    def remove_group(
        self,
        *,
        table_id: str,
        group_id: str,
        expected_version: int,
        operator_id: str,
    ) -> None:
        table = self.quantity_table_service.get_table(table_id)
        table.check_version(expected_version)

        group = table.remove_group(group_id)
        table.bump_version()
        self.audit_log_service.record_delete(
            project_id=table.project_id,
            entity_type="quantity_group",
            entity_id=group.id,
            operator_id=operator_id,
            before_value={"name": group.name, "items": len(group.items)},
        )
        self.db.flush()

    def move_group(
        self,
        *,
        table_id: str,
        group_id: str,
        target_index: int,
        expected_version: int,
        operator_id: str,
    ) -> QuantityGroup:
        table = self.quantity_table_service.get_table(table_id)
        table.check_version(expected_version)

        old_index = table.find_group(group_id).display_order
        group = table.move_group(group_id, target_index)
        if group.display_order != old_index:
            table.bump_version()
            self.audit_log_service.record_update(
                project_id=table.project_id,
                entity_type="quantity_group",
                entity_id=group.id,
                changed_attribute="display_order",
                before_value=old_index,
                after_value=group.display_order,
                operator_id=operator_id,
            )
        self.db.flush()
        return group
