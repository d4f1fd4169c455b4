import uuid

import pytest

HEADERS = {'X-Operator-Id': 'route-tester'}


def unique(prefix):
    return f"{prefix} {str(uuid.uuid4())[:8]}"


@pytest.fixture
def api_table(client):
    """Project with one table, one group and one item, created over HTTP."""
    resp = client.post('/projects', json={'name': unique('案件')}, headers=HEADERS)
    assert resp.status_code == 201
    project_id = resp.get_json()['id']

    resp = client.post(f'/projects/{project_id}/quantity-tables', json={'name': '1F'}, headers=HEADERS)
    assert resp.status_code == 201
    table = resp.get_json()
    assert table['version'] == 1

    resp = client.post(
        f"/quantity-tables/{table['id']}/groups",
        json={'expected_version': 1, 'name': '外壁'},
        headers=HEADERS,
    )
    assert resp.status_code == 201
    group = resp.get_json()['group']

    resp = client.post(
        f"/quantity-tables/{table['id']}/groups/{group['id']}/items",
        json={
            'expected_version': 2,
            'fields': {
                'major_category': '建築',
                'work_type': '工種1',
                'name': '名称1',
                'unit': 'm',
                'manual_quantity': '10.111',
            },
        },
        headers=HEADERS,
    )
    assert resp.status_code == 201
    body = resp.get_json()
    return {
        'project_id': project_id,
        'table_id': table['id'],
        'group_id': group['id'],
        'item': body['item'],
        'version': body['table_version'],
    }


def test_get_unknown_project_is_404(client):
    resp = client.get('/projects/missing')
    assert resp.status_code == 404
    assert resp.get_json()['code'] == 'NOT_FOUND'


def test_create_project_without_name_is_400(client):
    resp = client.post('/projects', json={}, headers=HEADERS)
    assert resp.status_code == 400
    assert resp.get_json()['code'] == 'REQUEST_VALIDATION_ERROR'


def test_item_numbers_are_two_decimal_strings(client, api_table):
    item = api_table['item']
    assert item['quantity'] == '10.11'
    assert item['calculation_method'] == 'STANDARD'
    assert item['visible_fields'] == ['manual_quantity']
    assert item['width'] is None

    resp = client.get(f"/quantity-tables/{api_table['table_id']}")
    table = resp.get_json()
    assert table['item_count'] == 1
    assert table['groups'][0]['items'][0]['id'] == item['id']


def test_edit_item_switches_method(client, api_table):
    resp = client.patch(
        f"/quantity-tables/{api_table['table_id']}/items/{api_table['item']['id']}",
        json={
            'expected_version': api_table['version'],
            'updates': {'calculation_method': 'AREA_VOLUME', 'width': '2', 'depth': '3'},
        },
        headers=HEADERS,
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['item']['quantity'] == '6.00'
    assert body['table_version'] == api_table['version'] + 1
    assert body['validation']['errors'] == []


def test_non_numeric_input_is_400(client, api_table):
    resp = client.patch(
        f"/quantity-tables/{api_table['table_id']}/items/{api_table['item']['id']}",
        json={'expected_version': api_table['version'], 'updates': {'manual_quantity': 'abc'}},
        headers=HEADERS,
    )
    assert resp.status_code == 400
    assert resp.get_json()['code'] == 'INVALID_NUMERIC_INPUT'


def test_stale_version_is_409(client, api_table):
    resp = client.patch(
        f"/quantity-tables/{api_table['table_id']}/items/{api_table['item']['id']}",
        json={'expected_version': 1, 'updates': {'name': '変更'}},
        headers=HEADERS,
    )
    assert resp.status_code == 409
    body = resp.get_json()
    assert body['code'] == 'CONCURRENCY_CONFLICT'
    assert body['actual_version'] == api_table['version']


def test_bulk_save_required_field_is_400(client, api_table):
    resp = client.put(
        f"/quantity-tables/{api_table['table_id']}/items",
        json={
            'expected_version': api_table['version'],
            'items': [{'id': api_table['item']['id'], 'unit': ''}],
        },
        headers=HEADERS,
    )
    assert resp.status_code == 400
    errors = resp.get_json()['field_errors']
    assert errors[0]['field'] == 'unit'
    assert errors[0]['item_id'] == api_table['item']['id']


def test_statement_lifecycle(client, api_table):
    project_id = api_table['project_id']
    payload = {'quantity_table_id': api_table['table_id'], 'name': '内訳書'}

    resp = client.post(f'/projects/{project_id}/itemized-statements', json=payload, headers=HEADERS)
    assert resp.status_code == 201
    statement = resp.get_json()
    assert statement['item_count'] == 1
    assert statement['items'][0]['quantity'] == '10.11'
    assert statement['items'][0]['group_key'] == '|工種1|名称1||m'

    resp = client.post(f'/projects/{project_id}/itemized-statements', json=payload, headers=HEADERS)
    assert resp.status_code == 409
    assert resp.get_json()['code'] == 'DUPLICATE_NAME'

    resp = client.get(f'/projects/{project_id}/itemized-statements?latest=1')
    assert resp.get_json()['total'] == 1

    resp = client.get(f"/itemized-statements/{statement['id']}/download/excel")
    assert resp.status_code == 200
    assert resp.mimetype == 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    assert resp.data[:2] == b'PK'

    resp = client.delete(f"/itemized-statements/{statement['id']}", headers={'If-Match': '"2"'})
    assert resp.status_code == 409

    resp = client.delete(f"/itemized-statements/{statement['id']}", headers={'If-Match': '"1"'})
    assert resp.status_code == 204

    resp = client.get(f"/itemized-statements/{statement['id']}")
    assert resp.status_code == 404


def test_statement_from_empty_table_is_422(client):
    resp = client.post('/projects', json={'name': unique('案件')}, headers=HEADERS)
    project_id = resp.get_json()['id']
    resp = client.post(f'/projects/{project_id}/quantity-tables', json={'name': '空'}, headers=HEADERS)
    table_id = resp.get_json()['id']

    resp = client.post(
        f'/projects/{project_id}/itemized-statements',
        json={'quantity_table_id': table_id, 'name': '内訳書'},
        headers=HEADERS,
    )
    assert resp.status_code == 422
    assert resp.get_json()['code'] == 'EMPTY_QUANTITY_TABLE'


def test_delete_without_version_is_400(client, api_table):
    resp = client.delete(f"/quantity-tables/{api_table['table_id']}")
    assert resp.status_code == 400


def test_delete_table_with_if_match(client, api_table):
    resp = client.delete(
        f"/quantity-tables/{api_table['table_id']}",
        headers={'If-Match': str(api_table['version'])},
    )
    assert resp.status_code == 204
    resp = client.get(f"/projects/{api_table['project_id']}/quantity-tables")
    assert resp.get_json()['total'] == 0
