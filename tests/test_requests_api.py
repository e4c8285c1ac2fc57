from models import DeviceStatus, VerificationStatus
from .conftest import auth_headers, make_device, make_user


def create(client, headers, device_id, message="need it"):
    return client.post(
        "/requests/", json={"device_id": device_id, "message": message}, headers=headers
    )


def test_request_lifecycle_scenarios(client, session, donor, requester, admin):
    r_h = auth_headers(requester, "requester")
    a_h = auth_headers(admin, "admin")
    d1, d2, d3, d4 = (make_device(session, donor) for _ in range(4))

    # first request succeeds and starts pending
    resp = create(client, r_h, d1.id)
    assert resp.status_code == 201
    req1 = resp.json()
    assert req1["status"] == "pending"
    assert req1["requester_id"] == requester.id

    # same device again is refused
    resp = create(client, r_h, d1.id)
    assert resp.status_code == 400
    assert resp.json()["error"] == "IneligibleRequest"
    assert "already have an active request" in resp.json()["detail"]
    assert resp.json()["existing_request_id"] == req1["id"]

    # up to three open requests, the fourth hits the cap
    req2 = create(client, r_h, d2.id).json()
    req3 = create(client, r_h, d3.id).json()
    resp = create(client, r_h, d4.id)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Maximum active requests (3) reached"
    assert resp.json()["active_request_count"] == 3

    # approve, complete, then try to reopen
    resp = client.put(
        f"/requests/{req1['id']}/status",
        json={"status": "approved", "admin_notes": "ok"},
        headers=a_h,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["admin_notes"] == "ok"
    resp = client.put(f"/requests/{req1['id']}/status", json={"status": "completed"}, headers=a_h)
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"
    resp = client.put(f"/requests/{req1['id']}/status", json={"status": "pending"}, headers=a_h)
    assert resp.status_code == 409
    assert resp.json()["error"] == "InvalidTransition"

    # rejection needs a reason
    resp = client.put(f"/requests/{req2['id']}/status", json={"status": "rejected"}, headers=a_h)
    assert resp.status_code == 422
    assert resp.json()["error"] == "MissingRejectionReason"
    resp = client.put(
        f"/requests/{req2['id']}/status",
        json={"status": "rejected", "rejection_reason": "not suitable"},
        headers=a_h,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"
    assert resp.json()["rejection_reason"] == "not suitable"

    resp = client.get(f"/requests/can-request/{d4.id}", headers=r_h)
    assert resp.status_code == 200
    assert resp.json()["can_request"] is True
    assert resp.json()["active_request_count"] == 1

    resp = client.get("/requests/", params={"status": "pending"}, headers=r_h)
    assert [item["id"] for item in resp.json()["items"]] == [req3["id"]]


def test_unverified_requester_is_refused(client, session, donor):
    user = make_user(session, verification=VerificationStatus.unverified)
    device = make_device(session, donor)
    headers = auth_headers(user, "requester")

    resp = create(client, headers, device.id)
    assert resp.status_code == 400
    assert "verification required" in resp.json()["detail"]

    resp = client.get("/requests/", headers=headers)
    assert resp.json()["total"] == 0


def test_can_request_reports_existing_request(client, session, donor, requester):
    device = make_device(session, donor)
    headers = auth_headers(requester, "requester")
    created = create(client, headers, device.id).json()

    resp = client.get(f"/requests/can-request/{device.id}", headers=headers)
    body = resp.json()
    assert body["can_request"] is False
    assert body["existing_request"]["id"] == created["id"]
    assert body["active_request_count"] == 1


def test_can_request_unavailable_device(client, session, donor, requester):
    device = make_device(session, donor, status=DeviceStatus.pending)
    resp = client.get(
        f"/requests/can-request/{device.id}", headers=auth_headers(requester, "requester")
    )
    assert resp.json()["can_request"] is False
    assert resp.json()["reason"] == "Device not available"


def test_empty_message_is_validation_error(client, session, donor, requester):
    device = make_device(session, donor)
    resp = create(client, auth_headers(requester, "requester"), device.id, message="  ")
    assert resp.status_code == 422
    assert resp.json()["error"] == "ValidationError"


def test_only_requesters_create_requests(client, session, donor):
    device = make_device(session, donor)
    resp = create(client, auth_headers(donor, "donor"), device.id)
    assert resp.status_code == 403


def test_requires_login(client):
    resp = client.get("/requests/")
    assert resp.status_code == 401


def test_device_owner_can_decide_but_others_cannot(client, session, donor, requester):
    stranger = make_user(session, is_donor=True, is_requester=False)
    device = make_device(session, donor)
    req = create(client, auth_headers(requester, "requester"), device.id).json()

    resp = client.put(
        f"/requests/{req['id']}/status",
        json={"status": "approved"},
        headers=auth_headers(stranger, "donor"),
    )
    assert resp.status_code == 403

    resp = client.put(
        f"/requests/{req['id']}/status",
        json={"status": "approved"},
        headers=auth_headers(donor, "donor"),
    )
    assert resp.status_code == 200
    assert resp.json()["reviewed_by_id"] == donor.id


def test_invalid_status_value(client, session, donor, requester, admin):
    device = make_device(session, donor)
    req = create(client, auth_headers(requester, "requester"), device.id).json()
    resp = client.put(
        f"/requests/{req['id']}/status",
        json={"status": "shipped"},
        headers=auth_headers(admin, "admin"),
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "ValidationError"


def test_cancel(client, session, donor, requester):
    other = make_user(session)
    device = make_device(session, donor)
    headers = auth_headers(requester, "requester")
    req = create(client, headers, device.id).json()

    resp = client.delete(f"/requests/{req['id']}", headers=auth_headers(other, "requester"))
    assert resp.status_code == 403
    assert resp.json()["error"] == "Forbidden"

    resp = client.delete(f"/requests/{req['id']}", headers=headers)
    assert resp.status_code == 204

    resp = client.get(f"/requests/{req['id']}", headers=headers)
    assert resp.status_code == 404


def test_cancel_approved_request_fails(client, session, donor, requester, admin):
    device = make_device(session, donor)
    headers = auth_headers(requester, "requester")
    req = create(client, headers, device.id).json()
    client.put(
        f"/requests/{req['id']}/status",
        json={"status": "approved"},
        headers=auth_headers(admin, "admin"),
    )
    resp = client.delete(f"/requests/{req['id']}", headers=headers)
    assert resp.status_code == 409


def test_admin_listing_is_paginated(client, session, donor, admin):
    requesters = [make_user(session) for _ in range(5)]
    for user in requesters:
        for _ in range(3):
            create(client, auth_headers(user, "requester"), make_device(session, donor).id)

    a_h = auth_headers(admin, "admin")
    resp = client.get("/requests/", params={"page": 2, "page_size": 4}, headers=a_h)
    body = resp.json()
    assert body["total"] == 15
    assert body["total_pages"] == 4
    assert body["page"] == 2
    assert len(body["items"]) == 4

    last = client.get("/requests/", params={"page": 4, "page_size": 4}, headers=a_h).json()
    assert len(last["items"]) == 3

    first = client.get("/requests/", params={"page_size": 4}, headers=a_h).json()
    ids = [item["id"] for item in first["items"]]
    assert ids == sorted(ids, reverse=True)

    by_requester = client.get(
        "/requests/", params={"requester_id": requesters[0].id}, headers=a_h
    ).json()
    assert by_requester["total"] == 3


def test_listing_is_pinned_to_own_requests(client, session, donor, requester):
    other = make_user(session)
    create(client, auth_headers(other, "requester"), make_device(session, donor).id)
    create(client, auth_headers(requester, "requester"), make_device(session, donor).id)

    headers = auth_headers(requester, "requester")
    resp = client.get("/requests/", headers=headers)
    assert resp.json()["total"] == 1
    assert resp.json()["items"][0]["requester_id"] == requester.id

    resp = client.get("/requests/", params={"requester_id": other.id}, headers=headers)
    assert resp.status_code == 403


def test_donor_lists_requests_for_own_device(client, session, donor, requester):
    device = make_device(session, donor)
    create(client, auth_headers(requester, "requester"), device.id)
    resp = client.get(
        "/requests/", params={"device_id": device.id}, headers=auth_headers(donor, "donor")
    )
    assert resp.json()["total"] == 1


def test_page_size_is_bounded(client, admin):
    resp = client.get(
        "/requests/", params={"page_size": 1000}, headers=auth_headers(admin, "admin")
    )
    assert resp.status_code == 422
    resp = client.get("/requests/", params={"page": 0}, headers=auth_headers(admin, "admin"))
    assert resp.status_code == 422


def test_stats(client, session, donor, requester, admin):
    a_h = auth_headers(admin, "admin")
    r_h = auth_headers(requester, "requester")
    first = create(client, r_h, make_device(session, donor).id).json()
    create(client, r_h, make_device(session, donor).id)
    client.put(
        f"/requests/{first['id']}/status",
        json={"status": "rejected", "rejection_reason": "no"},
        headers=a_h,
    )

    resp = client.get("/requests/stats", headers=a_h)
    assert resp.json() == {"pending": 1, "approved": 0, "rejected": 1, "completed": 0, "total": 2}

    assert client.get("/requests/stats", headers=r_h).status_code == 403


def test_unknown_device_is_not_found(client, requester):
    headers = auth_headers(requester, "requester")
    resp = create(client, headers, 9999)
    assert resp.status_code == 404
    assert resp.json()["error"] == "DeviceNotFound"
    assert resp.json()["detail"] == "Device not found"

    resp = client.get("/requests/can-request/9999", headers=headers)
    assert resp.status_code == 404

    assert client.get("/requests/", headers=headers).json()["total"] == 0


def test_public_device_requests(client, session, donor, requester, admin):
    other = make_user(session)
    device = make_device(session, donor)
    first = create(client, auth_headers(requester, "requester"), device.id).json()
    create(client, auth_headers(other, "requester"), device.id, message="me too")
    client.put(
        f"/requests/{first['id']}/status",
        json={"status": "approved", "admin_notes": "pickup friday"},
        headers=auth_headers(admin, "admin"),
    )

    resp = client.get(f"/requests/public/device/{device.id}")
    assert resp.status_code == 200
    body = resp.json()
    assert [item["name"] for item in body] == [other.name, requester.name]
    assert body[0]["status"] == "rejected"
    assert body[0]["rejection_reason"] == "Device assigned to another recipient"
    assert body[1]["status"] == "approved"
    assert body[1]["admin_notes"] == "pickup friday"
    assert "requester_id" not in body[0]


def test_public_device_requests_needs_approved_device(client, session, donor):
    device = make_device(session, donor, status=DeviceStatus.pending)
    assert client.get(f"/requests/public/device/{device.id}").status_code == 400
    assert client.get("/requests/public/device/9999").status_code == 404
