import os
import tempfile
import uuid

import pytest

# Test database and logs live in a throwaway directory; set before sekisan is imported
_TEST_DIR = tempfile.mkdtemp(prefix="sekisan-tests-")
os.environ['DATABASE_URL'] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ.setdefault('LOG_DIR', os.path.join(_TEST_DIR, 'logs'))

from sekisan.app_factory import create_app
from sekisan.db.init_db import init_db
from sekisan.db.session import get_session, reset_engine
from sekisan.routes.common import build_services


@pytest.fixture(scope='session', autouse=True)
def database():
    """Create all tables once per test run."""
    reset_engine()
    init_db()
    yield
    reset_engine()


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app({'TESTING': True})
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Database session, rolled back after each test."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(scope='function')
def services(session):
    return build_services(session)


@pytest.fixture(scope='function')
def project(services):
    suffix = str(uuid.uuid4())[:8]
    return services.projects.create_project(name=f'テスト案件 {suffix}', operator_id='tester')


@pytest.fixture(scope='function')
def table(services, project):
    return services.tables.create_table(project_id=project.id, name='1F 数量表', operator_id='tester')


@pytest.fixture(scope='function')
def group(services, table):
    return services.groups.add_group(
        table_id=table.id,
        name='外壁',
        expected_version=table.version,
        operator_id='tester',
    )


def item_fields(**overrides):
    """A complete, savable item."""
    fields = {
        'major_category': '建築',
        'custom_category': '分類A',
        'work_type': '工種1',
        'name': '名称1',
        'specification': '規格1',
        'unit': 'm',
        'manual_quantity': '10',
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def make_item(services, table):
    """Add an item through the service and return it."""
    def _make(group_id, **overrides):
        item, _ = services.items.add_item(
            table_id=table.id,
            group_id=group_id,
            fields=item_fields(**overrides),
            expected_version=table.version,
            operator_id='tester',
        )
        return item
    return _make
