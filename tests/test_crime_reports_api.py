from tests.conftest import ADMIN, GUEST, USER, docs


def _create(client, **overrides):
    body = {
        "crime_id": "CR-0001",
        "date": "2024-03-14",
        "time": "21:30",
        "day_of_week": "Thursday",
        "case_status": "Ongoing",
        "crime_occurred_indoors_or_outdoors": "Outdoors",
        "crime_type": "theft",
        "crime_type_category": "property",
        "street_name": "123 Main St",
        "barangay": "Poblacion",
        "municipality_city": "Tagum City",
        "province": "Davao del Norte",
        "region": "Region XI",
    }
    body.update(overrides)
    resp = client.post("/crime-reports", json=body, headers=ADMIN)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "running"
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/health/db").json()["connected"] is True


def test_access_gate_rejects_missing_and_invalid_tokens(client):
    assert client.get("/crime-reports/abc123").status_code == 401
    resp = client.get("/crime-reports/abc123", headers={"Authorization": "Bearer forged"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}


def test_access_gate_rejects_wrong_role(client):
    report = _create(client)

    resp = client.delete(f"/crime-reports/{report['id']}", headers=USER)
    assert resp.status_code == 403
    assert resp.json() == {"error": "Forbidden"}

    assert client.put(f"/crime-reports/{report['id']}", json={}, headers=USER).status_code == 403
    assert client.get(f"/crime-reports/{report['id']}", headers=GUEST).status_code == 403
    assert client.get("/crime-reports/count", headers=USER).status_code == 403


def test_gate_runs_before_body_is_read(client, db):
    resp = client.put("/crime-reports/abc123", content=b"{not json", headers=USER)
    assert resp.status_code == 403


def test_get_report(client):
    report = _create(client)

    resp = client.get(f"/crime-reports/{report['id']}", headers=USER)

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["crime_type"]["crime_type"] == "theft"
    assert data["location"]["barangay"] == "Poblacion"


def test_get_report_invalid_and_missing(client):
    resp = client.get("/crime-reports/bad.id", headers=ADMIN)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid Crime Report ID format"}

    resp = client.get("/crime-reports/missingReport1", headers=ADMIN)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Crime Report not found"}


def test_put_street_change_moves_coordinates(client):
    report = _create(client)

    resp = client.put(f"/crime-reports/{report['id']}", json={"street_name": "456 Oak Ave"}, headers=ADMIN)

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Crime Report Updated!"
    location = body["data"]["location"]
    assert location["street_name"] == "456 Oak Ave"
    assert (location["latitude"], location["longitude"]) != (
        report["location"]["latitude"], report["location"]["longitude"])
    assert body["data"]["crime_type"]["crime_type"] == "theft"
    assert body["data"]["crime_type"]["crime_type_category"] == "property"


def test_put_new_crime_type_without_category(client, db):
    report = _create(client)

    resp = client.put(f"/crime-reports/{report['id']}", json={"crime_type": "arson"}, headers=ADMIN)

    assert resp.status_code == 400
    assert "category is required" in resp.json()["error"]
    assert len(docs(db, "crime_types")) == 1


def test_put_empty_body_returns_original(client):
    report = _create(client)
    original = client.get(f"/crime-reports/{report['id']}", headers=ADMIN).json()["data"]

    resp = client.put(f"/crime-reports/{report['id']}", json={}, headers=ADMIN)

    assert resp.status_code == 200
    assert resp.json()["data"] == original


def test_put_malformed_json(client):
    report = _create(client)

    resp = client.put(f"/crime-reports/{report['id']}", content=b"{not json", headers=ADMIN)

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid JSON in request body"}


def test_put_geocode_failure(client, geocoder):
    report = _create(client)
    geocoder.fail = True

    resp = client.put(f"/crime-reports/{report['id']}", json={"street_name": "Nowhere"}, headers=ADMIN)

    assert resp.status_code == 400
    assert resp.json() == {"error": "Failed to geocode the provided address. Please check the address details."}
    after = client.get(f"/crime-reports/{report['id']}", headers=ADMIN).json()["data"]
    assert after["location"]["street_name"] == "123 Main St"


def test_put_not_found(client):
    resp = client.put("/crime-reports/missingReport1", json={"time": "10:00"}, headers=ADMIN)
    assert resp.status_code == 404


def test_delete_only_report_removes_linked_records(client, db):
    report = _create(client)

    resp = client.delete(f"/crime-reports/{report['id']}", headers=ADMIN)

    assert resp.status_code == 200
    assert resp.json() == {"message": "Crime Report Deleted!"}
    assert docs(db, "locations") == {}
    assert docs(db, "crime_types") == {}


def test_delete_invalid_and_missing(client):
    assert client.delete("/crime-reports/__id__", headers=ADMIN).status_code == 400
    assert client.delete("/crime-reports/missingReport1", headers=ADMIN).status_code == 404


def test_create_validation_error_is_400(client):
    resp = client.post("/crime-reports", json={"crime_id": "CR-1"}, headers=ADMIN)

    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Validation Error: ")


def test_list_count_and_status_counts(client):
    _create(client)
    _create(client, crime_id="CR-0002", case_status="Resolved", crime_type="Robbery",
            crime_type_category="violent")

    listed = client.get("/crime-reports", headers=USER).json()["data"]
    assert sorted(r["crime_id"] for r in listed) == ["CR-0001", "CR-0002"]

    filtered = client.get("/crime-reports", params={"crime_type": "robbery"}, headers=USER).json()["data"]
    assert [r["crime_id"] for r in filtered] == ["CR-0002"]

    assert client.get("/crime-reports/count", headers=ADMIN).json() == {"count": 2}
    assert client.get("/crime-reports/stats/status-counts", headers=ADMIN).json() == [
        {"status": "Ongoing", "count": 1},
        {"status": "Pending", "count": 0},
        {"status": "Resolved", "count": 1},
    ]


def test_stats_aggregate_and_top_locations(client):
    _create(client)
    _create(client, crime_id="CR-0002", date="2023-05-01", barangay="Magugpo")

    assert client.get("/crime-reports/stats/aggregate", headers=ADMIN).json() == [
        {"year": 2023, "count": 1},
        {"year": 2024, "count": 1},
    ]
    monthly = client.get("/crime-reports/stats/aggregate", params={"groupBy": "monthly"}, headers=ADMIN)
    assert monthly.json() == [{"month": "2023-05", "count": 1}, {"month": "2024-03", "count": 1}]

    top = client.get("/crime-reports/stats/top-locations", params={"groupBy": "barangay", "year": "2024"},
                     headers=ADMIN)
    assert top.status_code == 200
    assert top.json() == [{"locationName": "Poblacion", "count": 1}]
    assert client.get("/crime-reports/stats/top-locations", headers=ADMIN).json() == [
        {"locationName": "Tagum City", "count": 2},
    ]


def test_stats_reject_bad_grouping_and_non_admins(client):
    resp = client.get("/crime-reports/stats/aggregate", params={"groupBy": "daily"}, headers=ADMIN)
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid 'groupBy' parameter")

    resp = client.get("/crime-reports/stats/top-locations", params={"groupBy": "street"}, headers=ADMIN)
    assert resp.status_code == 400

    assert client.get("/crime-reports/stats/aggregate", headers=USER).status_code == 403
    assert client.get("/crime-reports/stats/top-locations", headers=USER).status_code == 403
