from careerlaunch.models.audit_log import AuditLog


def test_admin_endpoints_require_platform_admin(client, student, recruiter):
    for who in (student, recruiter):
        assert client.get("/admin/stats", headers=who["headers"]).status_code == 403
        assert client.get("/admin/audit-logs", headers=who["headers"]).status_code == 403
        r = client.post(
            "/admin/users/bulk-action",
            headers=who["headers"],
            json={"user_ids": [1], "action": "suspend"},
        )
        assert r.status_code == 403
    assert client.get("/admin/stats").status_code == 401


def test_bulk_suspend_locks_users_out(client, platform_admin, student, signup, db_session):
    other = signup(email="other@example.com", role="student")
    r = client.post(
        "/admin/users/bulk-action",
        headers=platform_admin["headers"],
        json={
            "user_ids": [student["id"], other["id"], platform_admin["id"], 9999],
            "action": "suspend",
            "reason": "spam",
        },
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["processed"] == 2
    assert body["failed"] == 2
    assert {e["id"] for e in body["errors"]} == {platform_admin["id"], 9999}

    assert client.get("/auth/me", headers=student["headers"]).status_code == 403

    entry = (
        db_session.query(AuditLog)
        .filter(AuditLog.action == "user.suspend", AuditLog.target_id == student["id"])
        .one()
    )
    assert entry.actor_id == platform_admin["id"]

    r = client.post(
        "/admin/users/bulk-action",
        headers=platform_admin["headers"],
        json={"user_ids": [student["id"]], "action": "activate"},
    )
    assert r.json()["processed"] == 1
    assert client.get("/auth/me", headers=student["headers"]).status_code == 200


def test_bulk_action_rejects_unknown_action(client, platform_admin, student):
    r = client.post(
        "/admin/users/bulk-action",
        headers=platform_admin["headers"],
        json={"user_ids": [student["id"]], "action": "delete"},
    )
    assert r.status_code == 422


def test_audit_log_filters_and_pagination(client, platform_admin, recruiter, create_job):
    for i in range(3):
        create_job(recruiter, title=f"Role {i}")

    r = client.get(
        "/admin/audit-logs",
        headers=platform_admin["headers"],
        params={"action": "job.create", "limit": 2},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["total"] == 3
    assert body["total_pages"] == 2
    assert len(body["logs"]) == 2
    assert all(log["actor_id"] == recruiter["id"] for log in body["logs"])

    r = client.get(
        "/admin/audit-logs",
        headers=platform_admin["headers"],
        params={"actor_id": platform_admin["id"]},
    )
    assert r.json()["total"] == 0


def test_platform_stats(client, platform_admin, recruiter, student, create_job):
    job = create_job(recruiter)
    create_job(recruiter, status="draft")
    client.post("/applications", headers=student["headers"], json={"job_id": job["id"]})

    r = client.get("/admin/stats", headers=platform_admin["headers"])
    assert r.status_code == 200, r.text
    stats = r.json()
    assert stats["users_by_role"] == {"platform_admin": 1, "recruiter": 1, "student": 1}
    assert stats["jobs_by_status"] == {"active": 1, "draft": 1}
    assert stats["applications_by_status"] == {"submitted": 1}
    assert stats["notifications"]["pending"] == 0
    assert set(stats["notifications"]) == {"pending", "failed", "sent"}


def test_assign_recruiter_to_company(client, platform_admin, recruiter, signup, db_session):
    acme_id = client.get("/auth/me", headers=recruiter["headers"]).json()["company"]["id"]
    newcomer = signup(email="newcomer@example.com", role="recruiter", company_name="Newcomer LLC")

    r = client.put(
        f"/admin/recruiters/{newcomer['id']}/company",
        headers=recruiter["headers"],
        json={"company_id": acme_id},
    )
    assert r.status_code == 403

    r = client.put(
        f"/admin/recruiters/{newcomer['id']}/company",
        headers=platform_admin["headers"],
        json={"company_id": acme_id},
    )
    assert r.status_code == 200, r.text
    assert r.json()["company"] == {"id": acme_id, "name": "Acme Corp"}
    assert client.get("/auth/me", headers=newcomer["headers"]).json()["company"]["id"] == acme_id

    entry = db_session.query(AuditLog).filter(AuditLog.action == "recruiter.assign_company").one()
    assert entry.actor_id == platform_admin["id"]
    assert entry.target_id == newcomer["id"]

    missing_company = client.put(
        f"/admin/recruiters/{newcomer['id']}/company",
        headers=platform_admin["headers"],
        json={"company_id": 9999},
    )
    assert missing_company.status_code == 404
    missing_recruiter = client.put(
        "/admin/recruiters/9999/company",
        headers=platform_admin["headers"],
        json={"company_id": acme_id},
    )
    assert missing_recruiter.status_code == 404
