from clinicdesk.services.rate_limit import SlidingWindowLimiter


def _submit(client, email="jane@example.com", headers=None, **extra):
    body = {
        "firstName": "Jane",
        "lastName": "Doe",
        "email": email,
        "phone": "0711000111",
        "message": "The waiting room could use more chairs.",
        **extra,
    }
    return client.post("/api/feedback", json=body, headers=headers or {})


def test_submission_is_public_and_queued_for_admins(client, admin):
    res = _submit(client, email="  Jane@Example.com ", company="Acme")
    assert res.status_code == 201
    fid = res.json()["feedback"]["id"]

    listed = client.get("/api/feedback", headers=admin).json()
    assert listed["pagination"]["total"] == 1
    entry = listed["feedback"][0]
    assert entry["id"] == fid
    assert entry["email"] == "jane@example.com"
    assert entry["status"] == "PENDING"
    assert entry["company"] == "Acme"
    assert entry["ipAddress"] == "testclient"


def test_submission_validation(client):
    assert _submit(client, email="not-an-email").status_code == 422
    assert _submit(client, phone="12345").status_code == 422
    assert _submit(client, message="too short").status_code == 422
    assert _submit(client, message="x" * 2001).status_code == 422


def test_same_email_cannot_resubmit_within_a_day(client):
    assert _submit(client).status_code == 201
    again = _submit(client, email="JANE@example.com")
    assert again.status_code == 400
    assert _submit(client, email="other@example.com").status_code == 201


def test_submissions_are_rate_limited_per_ip(client):
    for n in range(5):
        assert _submit(client, email=f"user{n}@example.com").status_code == 201
    blocked = _submit(client, email="user5@example.com")
    assert blocked.status_code == 429
    # another address still gets through
    other = _submit(client, email="user6@example.com", headers={"X-Forwarded-For": "10.0.0.7, 10.0.0.1"})
    assert other.status_code == 201


def test_status_update_and_delete(client, admin):
    fid = _submit(client).json()["feedback"]["id"]

    updated = client.patch(f"/api/feedback/{fid}", json={"status": "REPLIED"}, headers=admin)
    assert updated.status_code == 200
    assert updated.json()["feedback"]["status"] == "REPLIED"
    assert client.patch(f"/api/feedback/{fid}", json={"status": "LOST"}, headers=admin).status_code == 422

    replied = client.get("/api/feedback", params={"status": "REPLIED"}, headers=admin).json()
    assert [f["id"] for f in replied["feedback"]] == [fid]
    assert client.get("/api/feedback", params={"status": "PENDING"}, headers=admin).json()["feedback"] == []

    assert client.delete(f"/api/feedback/{fid}", headers=admin).status_code == 200
    assert client.get(f"/api/feedback/{fid}", headers=admin).status_code == 404
    assert client.delete(f"/api/feedback/{fid}", headers=admin).status_code == 404


def test_feedback_queue_is_admin_only(client, nurse, pharmacist):
    assert client.get("/api/feedback").status_code == 401
    assert client.get("/api/feedback", headers=nurse).status_code == 403
    assert client.get("/api/feedback", headers=pharmacist).status_code == 403


def test_sliding_window_limiter_forgets_old_hits():
    now = [0.0]
    limiter = SlidingWindowLimiter(limit=2, window=60, clock=lambda: now[0])
    assert limiter.hit("a") and limiter.hit("a")
    assert not limiter.hit("a")
    assert limiter.hit("b")

    now[0] = 61.0
    assert limiter.hit("a")
