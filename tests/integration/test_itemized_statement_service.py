from decimal import Decimal

import pytest

from sekisan.exceptions import (
    ConcurrencyConflictError,
    DuplicateNameError,
    EmptyQuantityTableError,
    FieldValidationError,
    NotFoundError,
    QuantityOverflowError,
)
from sekisan.services.itemized_statement_service import REPORT_COLUMNS


def create(services, project, table, name='内訳書1'):
    return services.statements.create_statement(
        project_id=project.id,
        quantity_table_id=table.id,
        name=name,
        operator_id='tester',
    )


def test_statement_sums_same_key_items(services, project, table, group, make_item):
    make_item(group.id, manual_quantity='10.11')
    make_item(group.id, manual_quantity='20.22')
    make_item(group.id, unit='m2', manual_quantity='5')

    statement = create(services, project, table)
    assert statement.item_count == 2
    assert statement.source_quantity_table_name == '1F 数量表'
    assert [(i.unit, i.quantity) for i in statement.items] == [
        ('m', Decimal('30.33')),
        ('m2', Decimal('5.00')),
    ]


def test_items_of_all_groups_are_aggregated(services, project, table, group, make_item):
    other = services.groups.add_group(
        table_id=table.id, name='内壁', expected_version=table.version, operator_id='tester'
    )
    make_item(group.id, manual_quantity='1')
    make_item(other.id, manual_quantity='2')
    statement = create(services, project, table)
    assert [i.quantity for i in statement.items] == [Decimal('3.00')]


def test_statement_is_a_snapshot(session, services, project, table, group, make_item):
    item = make_item(group.id, manual_quantity='10')
    statement = create(services, project, table)

    services.items.edit_item(
        table_id=table.id,
        item_id=item.id,
        updates={'manual_quantity': '99'},
        expected_version=table.version,
        operator_id='tester',
    )
    session.flush()
    session.expire_all()

    reloaded = services.statements.get_statement(statement.id)
    assert reloaded.items[0].quantity == Decimal('10.00')


def test_empty_table_is_refused(services, project, table, group):
    with pytest.raises(EmptyQuantityTableError):
        create(services, project, table)


def test_table_of_another_project_is_not_found(services, project, group, make_item, table):
    make_item(group.id)
    other = services.projects.create_project(name='別案件', operator_id='tester')
    with pytest.raises(NotFoundError):
        create(services, other, table)


def test_name_is_required(services, project, table, group, make_item):
    make_item(group.id)
    with pytest.raises(FieldValidationError):
        create(services, project, table, name=' ')


def test_duplicate_name_until_deleted(services, project, table, group, make_item):
    make_item(group.id)
    first = create(services, project, table)
    with pytest.raises(DuplicateNameError):
        create(services, project, table)

    services.statements.delete_statement(
        statement_id=first.id, expected_version=first.version, operator_id='tester'
    )
    again = create(services, project, table)
    assert again.id != first.id


def test_stale_delete_keeps_statement(services, project, table, group, make_item):
    make_item(group.id)
    statement = create(services, project, table)
    with pytest.raises(ConcurrencyConflictError):
        services.statements.delete_statement(
            statement_id=statement.id, expected_version=statement.version + 1, operator_id='tester'
        )
    assert services.statements.get_statement(statement.id) is statement


def test_rename_checks_duplicates(services, project, table, group, make_item):
    make_item(group.id)
    create(services, project, table, name='A')
    b = create(services, project, table, name='B')
    with pytest.raises(DuplicateNameError):
        services.statements.rename_statement(
            statement_id=b.id, name='A', expected_version=b.version, operator_id='tester'
        )
    services.statements.rename_statement(
        statement_id=b.id, name='C', expected_version=1, operator_id='tester'
    )
    assert b.name == 'C'
    assert b.version == 2


def test_list_search_sort_and_latest(services, project, table, group, make_item):
    make_item(group.id)
    for name in ('外構', '本体1', '本体2'):
        create(services, project, table, name=name)

    statements, total = services.statements.list_statements(project_id=project.id, search='本体')
    assert total == 2

    statements, _ = services.statements.list_statements(project_id=project.id, sort_by='name', order='asc')
    assert [s.name for s in statements] == sorted(['外構', '本体1', '本体2'])

    latest, total = services.statements.latest_statements(project_id=project.id)
    assert len(latest) == 2
    assert total == 3
    assert [s.name for s in latest] == ['本体2', '本体1']


def test_list_rejects_unknown_sort(services, project):
    with pytest.raises(FieldValidationError):
        services.statements.list_statements(project_id=project.id, sort_by='quantity')


def test_overflow_persists_nothing(services, project, table, group, make_item):
    make_item(group.id, manual_quantity='9999999.99')
    make_item(group.id, manual_quantity='1')
    with pytest.raises(QuantityOverflowError):
        create(services, project, table)
    _, total = services.statements.list_statements(project_id=project.id)
    assert total == 0


def test_report_dataframe_and_excel(services, project, table, group, make_item):
    make_item(group.id, custom_category=None, manual_quantity='3')
    make_item(group.id, custom_category='分類A', manual_quantity='1.5')
    statement = create(services, project, table)

    df = services.statements.generate_df_report(statement)
    assert list(df.columns) == REPORT_COLUMNS
    assert df.iloc[0]['数量'] == '3.00'
    assert df.iloc[0]['任意分類'] == ''

    df = services.statements.generate_df_report(statement, sort=True)
    assert df.iloc[0]['任意分類'] == '分類A'

    output = services.statements.to_excel(statement)
    assert output.read(2) == b'PK'
