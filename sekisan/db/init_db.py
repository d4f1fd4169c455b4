from sekisan.db.session import get_engine
from sekisan.db.base import Base


def init_db():
    # register every table on Base.metadata
    import sekisan.models.project  # noqa: F401
    import sekisan.models.quantity_table  # noqa: F401
    import sekisan.models.quantity_group  # noqa: F401
    import sekisan.models.quantity_item  # noqa: F401
    import sekisan.models.itemized_statement  # noqa: F401
    import sekisan.models.audit_log  # noqa: F401

    engine = get_engine()
    Base.metadata.create_all(bind=engine)
