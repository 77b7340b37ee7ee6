# test_checklists_endpoint.py
#
# Imports
import pytest
#
########################################################################################################################
#
# Fixtures:

CHECKLISTS_URL = "/api/v1/checklists/"


@pytest.fixture
def checklist(client):
    response = client.post(CHECKLISTS_URL, json={"title": "Packing"})
    assert response.status_code == 201
    return response.json()


def _items_url(checklist):
    return f"{CHECKLISTS_URL}{checklist['id']}/items"


def _add(client, checklist, content, parent=None):
    response = client.post(_items_url(checklist), json={"content": content, "parent_item_id": parent})
    assert response.status_code == 201
    return response.json()

#
# Tests:


def test_checklist_crud(client, checklist):
    assert client.get(CHECKLISTS_URL).json() == [checklist]
    renamed = client.put(f"{CHECKLISTS_URL}{checklist['id']}", json={"title": "Trip"})
    assert renamed.json()["title"] == "Trip"
    assert client.delete(f"{CHECKLISTS_URL}{checklist['id']}").status_code == 204
    assert client.get(f"{CHECKLISTS_URL}{checklist['id']}").status_code == 404


def test_item_response_shape(client, checklist):
    item = _add(client, checklist, "passport")
    assert item["order"] == 1
    assert item["is_completed"] is False
    assert item["parent_item_id"] is None
    assert item["deleted_at"] is None


def test_complete_item(client, checklist):
    item = _add(client, checklist, "socks")
    response = client.put(f"{_items_url(checklist)}/{item['id']}", json={"is_completed": True})
    assert response.status_code == 200
    assert response.json()["is_completed"] is True
    assert response.json()["content"] == "socks"


def test_reorder_via_patch(client, checklist):
    first, second, third = (_add(client, checklist, name) for name in ("one", "two", "three"))
    response = client.patch(f"{_items_url(checklist)}/{third['id']}/order", json={"position": 0})
    assert response.status_code == 200
    assert [(i["content"], i["order"]) for i in response.json()] == [("three", 1), ("one", 2), ("two", 3)]
    listed = client.get(_items_url(checklist)).json()
    assert [i["id"] for i in listed] == [third["id"], first["id"], second["id"]]


def test_reorder_rejects_negative_position(client, checklist):
    item = _add(client, checklist, "x")
    response = client.patch(f"{_items_url(checklist)}/{item['id']}/order", json={"position": -1})
    assert response.status_code == 422


def test_nesting_under_descendant_is_400(client, checklist):
    top = _add(client, checklist, "top")
    child = _add(client, checklist, "child", parent=top["id"])
    response = client.put(f"{_items_url(checklist)}/{top['id']}", json={"parent_item_id": child["id"]})
    assert response.status_code == 400


def test_unknown_parent_is_400(client, checklist):
    response = client.post(_items_url(checklist), json={"content": "orphan", "parent_item_id": 9999})
    assert response.status_code == 400
    assert response.json()["detail"] == "Parent item not found in this checklist."


def test_delete_item_removes_sub_items(client, checklist):
    top = _add(client, checklist, "top")
    _add(client, checklist, "child", parent=top["id"])
    keep = _add(client, checklist, "keep")
    assert client.delete(f"{_items_url(checklist)}/{top['id']}").status_code == 204
    assert [i["id"] for i in client.get(_items_url(checklist)).json()] == [keep["id"]]
    assert client.delete(f"{_items_url(checklist)}/{top['id']}").status_code == 404


def test_foreign_checklist_is_404(client_for, user_a, user_b):
    client_a = client_for(user_a)
    checklist = client_a.post(CHECKLISTS_URL, json={"title": "mine"}).json()
    item = client_a.post(_items_url(checklist), json={"content": "x"}).json()

    client_b = client_for(user_b)
    assert client_b.get(_items_url(checklist)).status_code == 404
    response = client_b.patch(f"{_items_url(checklist)}/{item['id']}/order", json={"position": 0})
    assert response.status_code == 404
    assert response.json() == {"detail": "Checklist item not found"}

#
# End of test_checklists_endpoint.py
########################################################################################################################
