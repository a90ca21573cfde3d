from bson.objectid import ObjectId


def _submit_pending(client, body):
    response = client.post("/resources", json=body)
    assert response.json()["status"] == "pending"
    return response.json()["id"]


def test_pending_queue_oldest_first(client, admin, contributor, material_body, session_body):
    first = _submit_pending(client, material_body(title="First"))
    second = _submit_pending(client, session_body(title="Second"))
    client.post("/resources", json=material_body(title="Live already"), headers=contributor["headers"])

    response = client.get("/admin/pending", headers=admin["headers"])
    assert response.status_code == 200
    body = response.json()
    assert [d["id"] for d in body["data"]] == [first, second]
    assert [d["resource_type"] for d in body["data"]] == ["material", "session"]
    assert body["counts"] == {"total": 2, "materials": 1, "sessions": 1}


def test_approve_moves_resource_out_of_queue(client, db, admin, material_body):
    resource_id = _submit_pending(client, material_body())

    response = client.post(
        f"/admin/resources/{resource_id}/approve", params={"type": "material"}, headers=admin["headers"]
    )
    assert response.status_code == 200
    assert response.json() == {"success": True, "id": resource_id, "status": "approved"}

    stored = db["materials"].find_one({"_id": ObjectId(resource_id)})
    assert stored["status"] == "approved"
    assert stored["approved_by"] == admin["id"]
    assert stored["approved_at"] is not None

    assert client.get("/admin/pending", headers=admin["headers"]).json()["data"] == []
    assert [d["id"] for d in client.get("/resources").json()["data"]] == [resource_id]


def test_reject_keeps_resource_hidden(client, db, admin, session_body):
    resource_id = _submit_pending(client, session_body())
    response = client.post(
        f"/admin/resources/{resource_id}/reject", params={"type": "session"}, headers=admin["headers"]
    )
    assert response.status_code == 200
    assert db["sessions"].find_one({"_id": ObjectId(resource_id)})["status"] == "rejected"
    assert client.get("/resources", params={"type": "session"}).json()["data"] == []


def test_second_decision_conflicts(client, db, admin, material_body):
    resource_id = _submit_pending(client, material_body())
    url = f"/admin/resources/{resource_id}"
    assert client.post(f"{url}/approve", params={"type": "material"}, headers=admin["headers"]).status_code == 200

    response = client.post(f"{url}/reject", params={"type": "material"}, headers=admin["headers"])
    assert response.status_code == 409
    assert db["materials"].find_one({"_id": ObjectId(resource_id)})["status"] == "approved"


def test_moderating_missing_resource(client, admin):
    response = client.post(
        f"/admin/resources/{ObjectId()}/approve", params={"type": "material"}, headers=admin["headers"]
    )
    assert response.status_code == 404


def test_admin_routes_need_admin(client, contributor, material_body):
    resource_id = _submit_pending(client, material_body())
    assert client.get("/admin/pending").status_code == 401
    assert client.get("/admin/pending", headers=contributor["headers"]).status_code == 403
    response = client.post(
        f"/admin/resources/{resource_id}/approve", params={"type": "material"}, headers=contributor["headers"]
    )
    assert response.status_code == 403
    assert response.json() == {"error": "Admin access required"}
