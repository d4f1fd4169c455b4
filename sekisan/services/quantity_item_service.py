from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from sekisan.exceptions import FieldValidationError
from sekisan.logger import get_logger
from sekisan.models.quantity_item import QuantityItem, TEXT_FIELDS
from sekisan.models.quantity_table import QuantityTable
from sekisan.services.audit_log_service import AuditLogService
from sekisan.services.calculation_method import coerce_method, editable_fields
from sekisan.services.quantity_table_service import QuantityTableService
from sekisan.services.quantity_validation_service import (
    NUMERIC_FIELDS,
    QuantityValidationService,
    ValidationReport,
)

logger = get_logger(__name__)

EDITABLE_FIELDS = frozenset(TEXT_FIELDS + NUMERIC_FIELDS + ("calculation_method",))


class QuantityItemService:
    """
    Human edits of quantity items.

    Responsibilities:
    - Modify whitelisted fields (numeric text goes through the number parser)
    - Re-check the whole item before anything is applied
    - Recompute the quantity when an active calculation input changes
    - Record audit logs
    - Structural operations (add / remove / copy / move) on the owning table

    Every call checks the table version and bumps it once on success.
    """

    def __init__(
        self,
        db: Session,
        audit_log_service: AuditLogService,
        validation_service: QuantityValidationService,
        quantity_table_service: QuantityTableService,
    ):
        self.db = db
        self.audit_log_service = audit_log_service
        self.validation_service = validation_service
        self.quantity_table_service = quantity_table_service

    def _load_table(self, table_id: str, expected_version: int) -> QuantityTable:
        table = self.quantity_table_service.get_table(table_id)
        table.check_version(expected_version)
        return table

    def _prepare_updates(
        self,
        item: QuantityItem,
        updates: Dict[str, Any],
        *,
        for_save: bool,
    ) -> Tuple[Dict[str, Any], ValidationReport]:
        '''
        Parse the raw updates and validate the item as it would look afterwards.
        Nothing is written to the item here.

        :return: (parsed values per updated field, report)
        :raises FieldValidationError: unknown field or any field error
        :raises InvalidNumericInputError: non-numeric text in a numeric field
        '''
        unknown = sorted(set(updates) - EDITABLE_FIELDS)
        if unknown:
            raise FieldValidationError([
                {"field": f, "message": f"Field '{f}' is not editable", "value": str(updates[f])} for f in unknown
            ])

        report = ValidationReport()
        parsed: Dict[str, Any] = {}
        for field, raw in updates.items():
            if field in NUMERIC_FIELDS:
                commit = self.validation_service.commit_numeric_field(field, raw)
                parsed[field] = commit.value
                report.corrections.extend(commit.report.corrections)
            elif field == "calculation_method":
                parsed[field] = coerce_method(raw)
            else:
                parsed[field] = None if raw is None or not str(raw).strip() else str(raw)

        candidate = {**item.value_fields(), **parsed}
        report.merge(self.validation_service.validate_item(candidate, for_save=for_save))
        report.raise_for_errors()
        return parsed, report

    def _check_copyable(self, table: QuantityTable, item_ids: List[str]) -> None:
        """Refuse copies whose recalculated quantity would be out of range."""
        errors = []
        for item_id in item_ids:
            item = table.find_item(item_id)
            issue = self.validation_service.validate_computed_quantity(item.calculation_method, item)
            if issue:
                errors.append({"field": issue.field, "message": issue.message, "value": issue.value, "item_id": item_id})
        if errors:
            raise FieldValidationError(errors)

    def _apply_updates(
        self,
        table: QuantityTable,
        item: QuantityItem,
        parsed: Dict[str, Any],
        *,
        operator_id: str,
    ) -> bool:
        method = parsed.get("calculation_method", item.calculation_method)
        trigger_fields = editable_fields(method) | {"calculation_method"}

        need_recalculate = False
        changed = False
        for field, new_value in parsed.items():
            old_value = getattr(item, field)
            if old_value == new_value:
                continue
            changed = True
            if field in trigger_fields:
                need_recalculate = True
            setattr(item, field, new_value)
            self.audit_log_service.record_update(
                project_id=table.project_id,
                entity_type="quantity_item",
                entity_id=item.id,
                changed_attribute=field,
                before_value=old_value,
                after_value=new_value,
                operator_id=operator_id,
            )

        if need_recalculate:
            old_quantity = item.quantity
            item.recalculate()
            if old_quantity != item.quantity:
                self.audit_log_service.record_system_update(
                    project_id=table.project_id,
                    entity_type="quantity_item",
                    entity_id=item.id,
                    changed_attribute="quantity",
                    before_value=old_quantity,
                    after_value=item.quantity,
                )
        return changed

    # =========
    # ✍️ Field edits
    # =========
    def add_item(
        self,
        *,
        table_id: str,
        group_id: str,
        expected_version: int,
        operator_id: str,
        fields: Optional[Dict[str, Any]] = None,
    ) -> Tuple[QuantityItem, ValidationReport]:
        '''
        Append an item to a group with STANDARD defaults, then apply the given fields.
        Required fields may still be blank here; they are enforced by bulk_save.
        '''
        table = self._load_table(table_id, expected_version)
        table.find_group(group_id)
        parsed, report = self._prepare_updates(QuantityItem.new(), fields or {}, for_save=False)
        item = table.add_item(group_id, **parsed)

        table.bump_version()
        self.db.flush()
        self.audit_log_service.record_create(
            project_id=table.project_id,
            entity_type="quantity_item",
            entity_id=item.id,
            operator_id=operator_id,
            after_value=item.value_fields(),
        )
        return item, report

    def edit_item(
        self,
        *,
        table_id: str,
        item_id: str,
        updates: Dict[str, Any],
        expected_version: int,
        operator_id: str,
    ) -> Tuple[QuantityItem, ValidationReport]:
        """
        Modify allowed fields of an item and recompute its quantity.

        :param updates: field -> raw value; numeric fields may be text ("12.5")
        :return: (item, report with warnings and corrections)
        """
        table = self._load_table(table_id, expected_version)
        item = table.find_item(item_id)

        parsed, report = self._prepare_updates(item, updates, for_save=False)
        if self._apply_updates(table, item, parsed, operator_id=operator_id):
            table.bump_version()
        self.db.flush()
        return item, report

    def change_calculation_method(
        self,
        *,
        table_id: str,
        item_id: str,
        method,
        expected_version: int,
        operator_id: str,
    ) -> Tuple[QuantityItem, ValidationReport]:
        '''
        Switch the calculation method. Inputs of the other methods are kept, so
        switching back restores the previous quantity.
        '''
        return self.edit_item(
            table_id=table_id,
            item_id=item_id,
            updates={"calculation_method": method},
            expected_version=expected_version,
            operator_id=operator_id,
        )

    def bulk_save(
        self,
        *,
        table_id: str,
        updates: List[Dict[str, Any]],
        expected_version: int,
        operator_id: str,
    ) -> Tuple[QuantityTable, Dict[str, ValidationReport]]:
        '''
        Save many item edits at once (the coalesced write of the editor).

        Each entry is {"id": item_id, <field>: <value>, ...}. Every touched item
        is validated with save rules (required fields, method inputs). If any
        item has errors nothing is applied.

        :raises FieldValidationError: errors of all items, tagged with item_id
        '''
        table = self._load_table(table_id, expected_version)

        prepared = []
        errors: List[Dict[str, Any]] = []
        for entry in updates:
            entry = dict(entry)
            item_id = entry.pop("id", None)
            item = table.find_item(item_id)
            try:
                parsed, report = self._prepare_updates(item, entry, for_save=True)
            except FieldValidationError as e:
                errors.extend({**err, "item_id": item_id} for err in e.errors)
                continue
            prepared.append((item, parsed, report))

        if errors:
            logger.info(f"[QuantityItem] bulk save rejected table={table_id} errors={len(errors)}")
            raise FieldValidationError(errors)

        reports: Dict[str, ValidationReport] = {}
        changed = False
        for item, parsed, report in prepared:
            changed = self._apply_updates(table, item, parsed, operator_id=operator_id) or changed
            reports[item.id] = report

        if changed:
            table.bump_version()
        self.db.flush()
        return table, reports

    # =========
    # 🧱 Structural operations
    # =========
    def remove_item(
        self,
        *,
        table_id: str,
        item_id: str,
        expected_version: int,
        operator_id: str,
    ) -> None:
        table = self._load_table(table_id, expected_version)
        item = table.remove_item(item_id)
        table.bump_version()
        self.audit_log_service.record_delete(
            project_id=table.project_id,
            entity_type="quantity_item",
            entity_id=item.id,
            operator_id=operator_id,
            before_value=item.value_fields(),
        )
        self.db.flush()

    def copy_item(
        self,
        *,
        table_id: str,
        item_id: str,
        expected_version: int,
        operator_id: str,
    ) -> QuantityItem:
        table = self._load_table(table_id, expected_version)
        self._check_copyable(table, [item_id])
        copy = table.copy_item(item_id)
        table.bump_version()
        self.db.flush()
        self.audit_log_service.record_create(
            project_id=table.project_id,
            entity_type="quantity_item",
            entity_id=copy.id,
            operator_id=operator_id,
            after_value={"copied_from": item_id},
        )
        return copy

    def move_item(
        self,
        *,
        table_id: str,
        item_id: str,
        target_index: int,
        expected_version: int,
        operator_id: str,
        target_group_id: Optional[str] = None,
    ) -> QuantityItem:
        '''
        Move an item within its group or to another group of the same table.
        A target group of another table is not found in this one (NotFoundError).
        '''
        table = self._load_table(table_id, expected_version)
        source_group, index = table.locate_item(item_id)
        before = {"group_id": source_group.id, "display_order": index}

        item = table.move_item(item_id, target_index, target_group_id)
        table.bump_version()
        self.db.flush()
        self.audit_log_service.record_update(
            project_id=table.project_id,
            entity_type="quantity_item",
            entity_id=item.id,
            changed_attribute="position",
            before_value=before,
            after_value={"group_id": item.quantity_group_id, "display_order": item.display_order},
            operator_id=operator_id,
        )
        return item

    def bulk_copy(
        self,
        *,
        table_id: str,
        item_ids: List[str],
        expected_version: int,
        operator_id: str,
    ) -> List[QuantityItem]:
        """Copy several items; each copy lands right after its source."""
        table = self._load_table(table_id, expected_version)
        self._check_copyable(table, item_ids)
        copies = [table.copy_item(item_id) for item_id in item_ids]
        table.bump_version()
        self.db.flush()
        for source_id, copy in zip(item_ids, copies):
            self.audit_log_service.record_create(
                project_id=table.project_id,
                entity_type="quantity_item",
                entity_id=copy.id,
                operator_id=operator_id,
                after_value={"copied_from": source_id},
            )
        return copies

    def bulk_move(
        self,
        *,
        table_id: str,
        item_ids: List[str],
        target_group_id: str,
        target_index: int,
        expected_version: int,
        operator_id: str,
    ) -> List[QuantityItem]:
        '''
        Move several items into one group, keeping the given order, starting at target_index.
        '''
        table = self._load_table(table_id, expected_version)
        table.find_group(target_group_id)

        moved = []
        for offset, item_id in enumerate(item_ids):
            moved.append(table.move_item(item_id, int(target_index) + offset, target_group_id))
        table.bump_version()
        self.db.flush()
        for item in moved:
            self.audit_log_service.record_update(
                project_id=table.project_id,
                entity_type="quantity_item",
                entity_id=item.id,
                changed_attribute="position",
                before_value=None,
                after_value={"group_id": target_group_id, "display_order": item.display_order},
                operator_id=operator_id,
            )
        return moved
