from datetime import datetime, timedelta, timezone

from careerlaunch.models.application import Application
from careerlaunch.models.audit_log import AuditLog
from careerlaunch.models.company import Company


def _company_id(client, recruiter) -> int:
    return client.get("/auth/me", headers=recruiter["headers"]).json()["company"]["id"]


def _verify(client, platform_admin, company_id, status="verified"):
    return client.put(
        f"/companies/{company_id}/verify",
        headers=platform_admin["headers"],
        json={"status": status},
    )


def test_new_company_profile_is_public_and_pending(client, recruiter):
    company_id = _company_id(client, recruiter)
    r = client.get(f"/companies/{company_id}")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["name"] == "Acme Corp"
    assert body["verification_status"] == "pending"
    assert body["benefits"] == []

    assert client.get("/companies/9999").status_code == 404


def test_member_updates_own_company(client, recruiter, add_colleague, db_session):
    company_id = _company_id(client, recruiter)
    r = client.put(
        f"/companies/{company_id}",
        headers=recruiter["headers"],
        json={
            "description": "  Rockets and anvils.  ",
            "size": "SME",
            "industry": "Manufacturing",
            "contact_email": "Hello@Acme.example.com",
            "technologies": ["Python", "python", " Go "],
        },
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["description"] == "Rockets and anvils."
    assert body["size"] == "sme"
    assert body["contact_email"] == "hello@acme.example.com"
    assert body["technologies"] == ["Python", "Go"]

    # Any recruiter of the company may edit it, not just the founder.
    colleague = add_colleague(recruiter, email="colleague@example.com")
    r = client.put(f"/companies/{company_id}", headers=colleague["headers"], json={"location": "Berlin"})
    assert r.status_code == 200, r.text
    assert r.json()["location"] == "Berlin"

    actions = [e.action for e in db_session.query(AuditLog).filter(AuditLog.target_type == "company").all()]
    assert actions == ["company.update", "company.update"]


def test_outsiders_cannot_update_company(client, recruiter, student, signup):
    company_id = _company_id(client, recruiter)
    outsider = signup(email="outsider@example.com", role="recruiter", company_name="Other Inc")

    for who in (outsider, student):
        r = client.put(f"/companies/{company_id}", headers=who["headers"], json={"industry": "Crime"})
        assert r.status_code == 403, r.text
        assert "your own company" in r.json()["error"]
    assert client.put(f"/companies/{company_id}", json={"industry": "Crime"}).status_code == 401
    assert client.get(f"/companies/{company_id}").json()["industry"] is None


def test_update_rejects_unknown_size(client, recruiter):
    company_id = _company_id(client, recruiter)
    r = client.put(f"/companies/{company_id}", headers=recruiter["headers"], json={"size": "huge"})
    assert r.status_code == 400


def test_verification_is_admin_only_and_audited(client, recruiter, platform_admin, db_session):
    company_id = _company_id(client, recruiter)
    r = client.put(f"/companies/{company_id}/verify", headers=recruiter["headers"], json={"status": "verified"})
    assert r.status_code == 403

    r = _verify(client, platform_admin, company_id)
    assert r.status_code == 200, r.text
    assert r.json()["company"]["verification_status"] == "verified"
    assert _verify(client, platform_admin, company_id, status="bogus").status_code == 400
    assert _verify(client, platform_admin, 9999).status_code == 404

    entry = db_session.query(AuditLog).filter(AuditLog.action == "company.verify").one()
    assert entry.actor_id == platform_admin["id"]
    assert entry.target_id == company_id


def test_search_returns_verified_companies_by_name(client, platform_admin, signup):
    ids = {}
    for name in ("Zeta Labs", "Alpha Bio", "Bio_Hidden"):
        rec = signup(email=f"{name.split()[0].lower()}@example.com", role="recruiter", company_name=name)
        ids[name] = _company_id(client, rec)
    _verify(client, platform_admin, ids["Zeta Labs"])
    _verify(client, platform_admin, ids["Alpha Bio"])

    r = client.get("/companies/search", params={"q": "bio"})
    assert r.status_code == 200, r.text
    assert [c["name"] for c in r.json()["companies"]] == ["Alpha Bio", "Zeta Labs"]

    assert client.get("/companies/search", params={"q": "%"}).json()["total"] == 0


def test_list_filters_and_pagination(client, platform_admin, signup, recruiter):
    acme = _company_id(client, recruiter)
    other = _company_id(client, signup(email="other@example.com", role="recruiter", company_name="Other Inc"))
    _verify(client, platform_admin, other)

    r = client.get("/companies", params={"verified": True})
    assert [c["id"] for c in r.json()["companies"]] == [other]
    r = client.get("/companies", params={"verified": False})
    assert [c["id"] for c in r.json()["companies"]] == [acme]

    r = client.get("/companies", params={"limit": 1, "page": 2})
    body = r.json()
    assert body["total"] == 2
    assert body["total_pages"] == 2
    assert len(body["companies"]) == 1

    assert client.get("/companies", params={"size": "huge"}).status_code == 400


def test_company_jobs_lists_only_active_postings(client, recruiter, create_job):
    company_id = _company_id(client, recruiter)
    active = create_job(recruiter, title="Open Role")
    create_job(recruiter, title="Hidden Draft", status="draft")

    r = client.get(f"/companies/{company_id}/jobs")
    assert r.status_code == 200, r.text
    body = r.json()
    assert [j["id"] for j in body["jobs"]] == [active["id"]]
    assert body["jobs"][0]["company"]["id"] == company_id
    assert client.get("/companies/9999/jobs").status_code == 404


def test_company_stats(client, recruiter, student, signup, platform_admin, create_job, db_session):
    company_id = _company_id(client, recruiter)
    first = create_job(recruiter, required_skills=["Python", "SQL"])
    create_job(recruiter, title="Data Engineer", required_skills=["python", "Spark"])
    create_job(recruiter, title="Draft", status="draft", required_skills=["Go"])

    other_student = signup(email="second@example.com", role="student")
    hired_id = client.post("/applications", headers=student["headers"], json={"job_id": first["id"]}).json()["id"]
    client.post("/applications", headers=other_student["headers"], json={"job_id": first["id"]})

    # Backdate the application so the hire took three days.
    app = db_session.query(Application).filter(Application.id == hired_id).one()
    app.applied_at = datetime.now(timezone.utc).replace(microsecond=0) - timedelta(days=3)
    db_session.commit()
    r = client.patch(f"/applications/{hired_id}/status", headers=recruiter["headers"], json={"status": "accepted"})
    assert r.status_code == 200, r.text

    r = client.get(f"/companies/{company_id}/stats", headers=recruiter["headers"])
    assert r.status_code == 200, r.text
    stats = r.json()
    assert stats["total_jobs"] == 3
    assert stats["active_jobs"] == 2
    assert stats["total_applications"] == 2
    assert stats["hired_candidates"] == 1
    assert stats["average_time_to_hire"] == 3
    assert stats["top_skills_required"][0] == {"skill": "Python", "count": 2}
    assert {s["skill"] for s in stats["top_skills_required"]} == {"Python", "SQL", "Spark", "Go"}
    assert sum(m["count"] for m in stats["applications_by_month"]) == 2

    assert client.get(f"/companies/{company_id}/stats", headers=platform_admin["headers"]).status_code == 200


def test_company_stats_forbidden_to_outsiders(client, recruiter, student, signup):
    company_id = _company_id(client, recruiter)
    outsider = signup(email="outsider@example.com", role="recruiter", company_name="Other Inc")

    r = client.get(f"/companies/{company_id}/stats", headers=outsider["headers"])
    assert r.status_code == 403
    assert "your own company" in r.json()["error"]
    assert client.get(f"/companies/{company_id}/stats", headers=student["headers"]).status_code == 403


def test_signup_company_starts_unverified(client, signup, db_session):
    signup(email="founder@example.com", role="recruiter", company_name="Fresh Startup")
    company = db_session.query(Company).filter(Company.name == "Fresh Startup").one()
    assert company.verification_status == "pending"
