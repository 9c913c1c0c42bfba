from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from goodrun.services import job_views, lifecycle_service


def _ids(response):
    assert response.status_code == 200
    return [j["id"] for j in response.json()["jobs"]]


class TestAvailableView:
    def test_newest_first(self, client, make_job, a_headers):
        first = make_job()
        second = make_job()
        assert _ids(client.get("/api/v1/jobs/available", headers=a_headers)) == [second, first]

    def test_admin_also_sees_cancelled_in_delivery(self, client, session, make_job, admin, volunteer_a,
                                                   admin_headers, a_headers):
        open_id = make_job()
        cancelled_id = make_job()
        lifecycle_service.reserve(session, cancelled_id, volunteer_a)
        lifecycle_service.advance(session, cancelled_id, volunteer_a)
        lifecycle_service.cancel(session, cancelled_id, admin)

        assert _ids(client.get("/api/v1/jobs/available", headers=a_headers)) == [open_id]
        assert set(_ids(client.get("/api/v1/jobs/available", headers=admin_headers))) == {open_id, cancelled_id}


class TestOngoingView:
    def test_volunteer_sees_only_own(self, client, session, make_job, volunteer_a, volunteer_b,
                                     a_headers, b_headers, admin_headers):
        mine = make_job()
        theirs = make_job()
        lifecycle_service.reserve(session, mine, volunteer_a)
        lifecycle_service.reserve(session, theirs, volunteer_b)

        assert _ids(client.get("/api/v1/jobs/ongoing", headers=a_headers)) == [mine]
        assert _ids(client.get("/api/v1/jobs/ongoing", headers=b_headers)) == [theirs]
        assert set(_ids(client.get("/api/v1/jobs/ongoing", headers=admin_headers))) == {mine, theirs}

    def test_ordering(self, client, session, make_job, volunteer_a, a_headers):
        late = make_job(deadline_date="2099-12-01")
        soon = make_job(deadline_date="2099-01-01")
        no_deadline = make_job(deadline_date=None)
        delivering = make_job(deadline_date="2099-12-31")
        for job_id in (late, soon, no_deadline, delivering):
            lifecycle_service.reserve(session, job_id, volunteer_a)
        lifecycle_service.advance(session, delivering, volunteer_a)

        # in_delivery first, then soonest deadline, missing deadlines last
        assert _ids(client.get("/api/v1/jobs/ongoing", headers=a_headers)) == [delivering, soon, late, no_deadline]


class TestCompletedView:
    def _complete(self, session, job_id, volunteer):
        lifecycle_service.reserve(session, job_id, volunteer)
        lifecycle_service.advance(session, job_id, volunteer)
        lifecycle_service.advance(session, job_id, volunteer)

    def test_filtered_by_role(self, client, session, make_job, volunteer_a, volunteer_b,
                              a_headers, b_headers, admin_headers):
        mine = make_job()
        theirs = make_job()
        self._complete(session, mine, volunteer_a)
        self._complete(session, theirs, volunteer_b)

        assert _ids(client.get("/api/v1/jobs/completed", headers=a_headers)) == [mine]
        r = client.get("/api/v1/jobs/completed", headers=admin_headers)
        jobs = {j["id"]: j for j in r.json()["jobs"]}
        assert set(jobs) == {mine, theirs}
        assert jobs[theirs]["assignee_name"] == "Blair Volunteer"
        assert jobs[theirs]["assignee_email"] == "blair@goodrun.org"

    def test_most_recent_dropoff_first(self, client, session, make_job, volunteer_a, a_headers):
        older = make_job()
        newer = make_job()
        undated = make_job()
        for job_id in (older, newer, undated):
            self._complete(session, job_id, volunteer_a)
        session.execute(text("UPDATE jobs SET dropoff_date = '2030-01-01T10:00:00Z' WHERE id = :id"), {"id": older})
        session.execute(text("UPDATE jobs SET dropoff_date = '2030-02-01T10:00:00Z' WHERE id = :id"), {"id": newer})
        session.execute(text("UPDATE jobs SET dropoff_date = NULL WHERE id = :id"), {"id": undated})
        session.commit()

        assert _ids(client.get("/api/v1/jobs/completed", headers=a_headers)) == [newer, older, undated]


class TestJobDetailVisibility:
    def test_volunteer_sees_available_and_own(self, client, session, make_job, volunteer_a, volunteer_b,
                                              a_headers, b_headers):
        open_id = make_job()
        taken = make_job()
        lifecycle_service.reserve(session, taken, volunteer_a)

        assert client.get(f"/api/v1/jobs/{open_id}", headers=b_headers).status_code == 200
        assert client.get(f"/api/v1/jobs/{taken}", headers=a_headers).status_code == 200
        assert client.get(f"/api/v1/jobs/{taken}", headers=b_headers).status_code == 403

    def test_admin_sees_everything(self, client, session, make_job, volunteer_a, admin_headers):
        job_id = make_job()
        lifecycle_service.reserve(session, job_id, volunteer_a)
        r = client.get(f"/api/v1/jobs/{job_id}", headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["assignee_name"] == "Alex Volunteer"

    def test_missing_job(self, client, a_headers):
        assert client.get("/api/v1/jobs/9999", headers=a_headers).status_code == 404


class TestStoreFailure:
    def test_database_error_is_generic_500(self, client, a_headers, monkeypatch):
        def broken(db, actor):
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        monkeypatch.setattr(job_views, "available_jobs", broken)
        r = client.get("/api/v1/jobs/available", headers=a_headers)
        assert r.status_code == 500
        assert r.json() == {"detail": "Server error"}
