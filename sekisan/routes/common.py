# sekisan/routes/common.py
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Type, TypeVar

from flask import request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from sekisan.db.session import get_session
from sekisan.exceptions import FieldValidationError
from sekisan.logger import get_logger
from sekisan.services.audit_log_service import AuditLogService
from sekisan.services.itemized_statement_service import ItemizedStatementService
from sekisan.services.project_service import ProjectService
from sekisan.services.quantity_group_service import QuantityGroupService
from sekisan.services.quantity_item_service import QuantityItemService
from sekisan.services.quantity_table_service import QuantityTableService
from sekisan.services.quantity_validation_service import QuantityValidationService

logger = get_logger(__name__)

OPERATOR_HEADER = "X-Operator-Id"
ANONYMOUS_OPERATOR = "anonymous"

RequestModel = TypeVar("RequestModel", bound=BaseModel)


@dataclass
class Services:
    projects: ProjectService
    tables: QuantityTableService
    groups: QuantityGroupService
    items: QuantityItemService
    statements: ItemizedStatementService


def build_services(db: Session) -> Services:
    audit_log_service = AuditLogService(db)
    table_service = QuantityTableService(db, audit_log_service)
    return Services(
        projects=ProjectService(db, audit_log_service),
        tables=table_service,
        groups=QuantityGroupService(db, audit_log_service, table_service),
        items=QuantityItemService(db, audit_log_service, QuantityValidationService(), table_service),
        statements=ItemizedStatementService(db, audit_log_service, table_service),
    )


@contextmanager
def unit_of_work():
    """One session per request: commit on success, rollback on any error, always close."""
    db = get_session()
    try:
        yield build_services(db)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.info(f"[{request.method} {request.path}] rolled back: {type(e).__name__}: {e}")
        raise
    finally:
        db.close()


def operator_id() -> str:
    return request.headers.get(OPERATOR_HEADER) or ANONYMOUS_OPERATOR


def parse_body(model: Type[RequestModel]) -> RequestModel:
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    return model.model_validate(payload)


def expected_version_for_delete() -> int:
    '''
    Version token of a DELETE: If-Match header ("3" or W/"3") or
    {"expected_version": 3} in the body.
    '''
    raw = request.headers.get("If-Match")
    if raw is None:
        payload = request.get_json(silent=True) or {}
        raw = payload.get("expected_version")
    if raw is not None:
        text = str(raw).strip()
        if text.startswith("W/"):
            text = text[2:]
        text = text.strip('"')
        if text.isdigit():
            return int(text)
    raise FieldValidationError([{
        "field": "expected_version",
        "message": "expected_version (or an If-Match header) is required",
        "value": None if raw is None else str(raw),
    }])


def query_int(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise FieldValidationError([{"field": name, "message": f"{name} must be an integer", "value": raw}])
