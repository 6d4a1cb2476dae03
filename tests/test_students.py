def test_profile_defaults(client, signup):
    s = signup(email="fresh@example.com", role="student", name="Fresh Grad")
    r = client.get("/students/me", headers=s["headers"])
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["id"] == s["id"]
    assert data["name"] == "Fresh Grad"
    assert data["skills"] == []
    assert data["job_preferences"] is None


def test_update_profile_cleans_lists(client, student):
    r = client.put(
        "/students/me",
        headers=student["headers"],
        json={
            "skills": ["Go", " go ", "Kubernetes", ""],
            "programming_languages": ["Go", "Python"],
            "major": "Computer Science",
            "graduation_year": 2026,
            "gpa": 3.7,
        },
    )
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["skills"] == ["Go", "Kubernetes"]
    assert data["programming_languages"] == ["Go", "Python"]
    assert data["major"] == "Computer Science"
    assert data["graduation_year"] == 2026


def test_partial_update_keeps_other_fields(client, student):
    client.put("/students/me", headers=student["headers"], json={"bio": "Hello"})
    data = client.get("/students/me", headers=student["headers"]).json()
    assert data["bio"] == "Hello"
    assert data["skills"] == ["Python", "SQL", "Docker"]


def test_job_preferences_are_validated(client, student):
    r = client.put(
        "/students/me",
        headers=student["headers"],
        json={"job_preferences": {"job_types": ["Internship", "internship"], "locations": ["Berlin", "berlin"]}},
    )
    assert r.status_code == 200, r.text
    prefs = r.json()["job_preferences"]
    assert prefs["job_types"] == ["internship"]
    assert prefs["locations"] == ["Berlin"]
    assert prefs["remote_work"] is False

    r = client.put(
        "/students/me",
        headers=student["headers"],
        json={"job_preferences": {"job_types": ["gig"]}},
    )
    assert r.status_code == 400


def test_profile_rejects_out_of_range_values(client, student):
    r = client.put("/students/me", headers=student["headers"], json={"gpa": 42})
    assert r.status_code == 422


def test_profile_is_student_only(client, recruiter):
    assert client.get("/students/me", headers=recruiter["headers"]).status_code == 403
