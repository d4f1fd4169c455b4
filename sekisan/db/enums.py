# sekisan/db/enums.py
import enum


# QuantityItem related enums
class CalculationMethod(enum.Enum):
    STANDARD = "STANDARD"        # quantity typed directly
    AREA_VOLUME = "AREA_VOLUME"  # product of W / D / H (/ weight)
    PITCH = "PITCH"              # piece count from range and pitch


# AuditLog related enums
class AuditEntityType(enum.Enum):
    Project = "project"
    QuantityTable = "quantity_table"
    QuantityGroup = "quantity_group"
    QuantityItem = "quantity_item"
    ItemizedStatement = "itemized_statement"


class AuditAction(enum.Enum):
    create = "create"
    update = "update"
    delete = "delete"
    system = "system"


# ItemizedStatement list ordering
class StatementSortField(enum.Enum):
    created_at = "created_at"
    name = "name"


class SortOrder(enum.Enum):
    asc = "asc"
    desc = "desc"
