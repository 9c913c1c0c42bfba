from goodrun.services import lifecycle_service


class TestProfile:
    def test_profile_counts_finished_pickups(self, client, session, make_job, volunteer_a, a_headers):
        for _ in range(2):
            job_id = make_job()
            lifecycle_service.reserve(session, job_id, volunteer_a)
            lifecycle_service.advance(session, job_id, volunteer_a)
            lifecycle_service.advance(session, job_id, volunteer_a)
        lifecycle_service.reserve(session, make_job(), volunteer_a)

        r = client.get("/api/v1/profile", headers=a_headers)
        assert r.status_code == 200
        data = r.json()
        assert data["email"] == "alex@goodrun.org"
        assert data["role"] == "volunteer"
        assert data["pickups_finished"] == 2

    def test_profile_requires_auth(self, client):
        assert client.get("/api/v1/profile").status_code == 401


class TestAnalytics:
    def test_empty(self, client, admin_headers):
        r = client.get("/api/v1/analytics", headers=admin_headers)
        assert r.status_code == 200
        data = r.json()
        assert data["total_jobs"] == 0
        assert data["completion_rate"] is None
        assert data["by_stage"]["available"] == 0
        assert data["top_volunteers"] == []

    def test_counts(self, client, session, make_job, admin, volunteer_a, volunteer_b, admin_headers):
        make_job(deadline_date="2000-01-01")  # overdue
        make_job()

        done = make_job(weight=4)
        lifecycle_service.reserve(session, done, volunteer_a)
        lifecycle_service.advance(session, done, volunteer_a)
        lifecycle_service.advance(session, done, volunteer_a)

        dropped = make_job()
        lifecycle_service.reserve(session, dropped, volunteer_b)
        lifecycle_service.advance(session, dropped, volunteer_b)
        lifecycle_service.cancel(session, dropped, admin)

        data = client.get("/api/v1/analytics", headers=admin_headers).json()
        assert data["total_jobs"] == 4
        assert data["by_stage"] == {
            "available": 2,
            "reserved": 0,
            "in_delivery": 0,
            "completed": 1,
            "cancelled_in_delivery": 1,
        }
        assert data["completion_rate"] == 25.0
        assert data["follow_up_open"] == 1
        assert data["overdue_count"] == 1
        assert data["top_volunteers"] == [
            {"user_id": volunteer_a.id, "name": "Alex Volunteer", "completed": 1, "weight": 4.0},
        ]

    def test_volunteer_forbidden(self, client, a_headers):
        assert client.get("/api/v1/analytics", headers=a_headers).status_code == 403
