import pytest

from sekisan.exceptions import ConcurrencyConflictError, FieldValidationError, NotFoundError


def test_create_and_get_table(services, project):
    table = services.tables.create_table(project_id=project.id, name=' 基礎 ', operator_id='tester')
    assert table.name == '基礎'
    assert table.version == 1
    assert services.tables.get_table(table.id) is table


def test_create_table_requires_name(services, project):
    with pytest.raises(FieldValidationError):
        services.tables.create_table(project_id=project.id, name='  ', operator_id='tester')


def test_create_table_for_unknown_project(services):
    with pytest.raises(NotFoundError):
        services.tables.create_table(project_id='missing', name='基礎', operator_id='tester')


def test_list_tables_search_and_paging(services, project):
    for name in ('1F', '2F', '屋根'):
        services.tables.create_table(project_id=project.id, name=name, operator_id='tester')

    tables, total = services.tables.list_tables(project_id=project.id, search='F')
    assert total == 2
    assert {t.name for t in tables} == {'1F', '2F'}

    tables, total = services.tables.list_tables(project_id=project.id, page=2, limit=2)
    assert total == 3
    assert len(tables) == 1


def test_list_tables_rejects_large_pages(services, project):
    with pytest.raises(FieldValidationError):
        services.tables.list_tables(project_id=project.id, limit=101)


def test_rename_bumps_version(services, table):
    services.tables.rename_table(table_id=table.id, name='1F 改', expected_version=1, operator_id='tester')
    assert table.name == '1F 改'
    assert table.version == 2
    with pytest.raises(ConcurrencyConflictError):
        services.tables.rename_table(table_id=table.id, name='x', expected_version=1, operator_id='tester')


def test_deleted_table_is_hidden(services, project, table):
    services.tables.delete_table(table_id=table.id, expected_version=table.version, operator_id='tester')
    with pytest.raises(NotFoundError):
        services.tables.get_table(table.id)
    _, total = services.tables.list_tables(project_id=project.id)
    assert total == 0


def test_group_edit_and_reorder(services, table, group):
    second = services.groups.add_group(
        table_id=table.id, name='内壁', survey_image_id='img-1', expected_version=table.version, operator_id='tester'
    )
    services.groups.update_group(
        table_id=table.id,
        group_id=second.id,
        updates={'has_annotation': True},
        expected_version=table.version,
        operator_id='tester',
    )
    assert second.has_annotation is True

    services.groups.update_group(
        table_id=table.id,
        group_id=second.id,
        updates={'survey_image_id': None},
        expected_version=table.version,
        operator_id='tester',
    )
    assert second.has_annotation is False

    services.groups.move_group(
        table_id=table.id, group_id=second.id, target_index=0, expected_version=table.version, operator_id='tester'
    )
    assert [g.name for g in table.groups] == ['内壁', '外壁']
    assert [g.display_order for g in table.groups] == [0, 1]


def test_group_update_rejects_unknown_field(services, table, group):
    with pytest.raises(FieldValidationError):
        services.groups.update_group(
            table_id=table.id,
            group_id=group.id,
            updates={'display_order': 3},
            expected_version=table.version,
            operator_id='tester',
        )
