class TestOrganisations:
    def _create(self, client, headers, **overrides):
        body = {
            "name": "Northside Pantry",
            "contact_no": "555-0142",
            "office_hours": "Tue-Sat 10-4",
            "address": "88 Hill Rd",
        }
        body.update(overrides)
        return client.post("/api/v1/organisations", json=body, headers=headers)

    def test_create_organisation(self, client, admin_headers):
        r = self._create(client, admin_headers)
        assert r.status_code == 201
        data = r.json()
        assert data["name"] == "Northside Pantry"
        assert data["job_count"] == 0

    def test_create_requires_all_fields(self, client, admin_headers):
        r = self._create(client, admin_headers, office_hours="")
        assert r.status_code == 400

    def test_volunteer_cannot_create(self, client, a_headers):
        r = self._create(client, a_headers)
        assert r.status_code == 403

    def test_list_and_search(self, client, admin_headers, a_headers, organisation):
        self._create(client, admin_headers)

        r = client.get("/api/v1/organisations", headers=a_headers)
        assert r.status_code == 200
        assert len(r.json()) == 2

        r = client.get("/api/v1/organisations?q=hill", headers=a_headers)
        names = [o["name"] for o in r.json()]
        assert names == ["Northside Pantry"]

        r = client.get("/api/v1/organisations?q=0100", headers=a_headers)
        assert [o["id"] for o in r.json()] == [organisation]

    def test_job_count(self, client, a_headers, organisation, make_job):
        make_job()
        make_job()
        r = client.get(f"/api/v1/organisations/{organisation}", headers=a_headers)
        assert r.status_code == 200
        assert r.json()["job_count"] == 2

    def test_update_organisation(self, client, admin_headers, organisation):
        r = client.patch(f"/api/v1/organisations/{organisation}", json={
            "office_hours": "Daily 8-8",
        }, headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["office_hours"] == "Daily 8-8"
        assert r.json()["name"] == "Harbour Food Bank"

    def test_get_missing(self, client, a_headers):
        r = client.get("/api/v1/organisations/9999", headers=a_headers)
        assert r.status_code == 404

    def test_delete_blocked_while_jobs_exist(self, client, admin_headers, organisation, make_job):
        make_job()
        r = client.delete(f"/api/v1/organisations/{organisation}", headers=admin_headers)
        assert r.status_code == 409

    def test_delete_organisation(self, client, admin_headers):
        org_id = self._create(client, admin_headers).json()["id"]
        r = client.delete(f"/api/v1/organisations/{org_id}", headers=admin_headers)
        assert r.status_code == 200
        r = client.get(f"/api/v1/organisations/{org_id}", headers=admin_headers)
        assert r.status_code == 404
