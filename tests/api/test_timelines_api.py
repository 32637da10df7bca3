"""Integration tests for the timeline API.

POST /api/timelines, GET /api/timelines and GET /api/timelines/{id} against
SQLite through the real app factory and lifespan.
"""

import uuid

import pytest

pytestmark = pytest.mark.integration


def create(client, case_name="Smith v. Jones", area="civil", files=None):
    return client.post(
        "/api/timelines",
        json={"caseName": case_name, "areaOfLaw": area, "files": files or []},
    )


def test_create_returns_timeline_id(api_client):
    response = create(
        api_client,
        files=[{"fileName": "a.pdf", "url": "https://files.test/a.pdf", "size": 1000}],
    )

    assert response.status_code == 201
    uuid.UUID(response.json()["timelineId"])


def test_created_timeline_is_listed_with_files(api_client):
    files = [
        {"fileName": "a.pdf", "url": "https://files.test/a.pdf", "size": 1000},
        {"fileName": "b.png", "url": "https://files.test/b.png", "size": 2048},
    ]
    timeline_id = create(api_client, files=files).json()["timelineId"]

    listed = api_client.get("/api/timelines").json()

    assert len(listed) == 1
    timeline = listed[0]
    assert timeline["id"] == timeline_id
    assert timeline["caseName"] == "Smith v. Jones"
    assert timeline["areaOfLaw"] == "civil"
    assert [(f["fileName"], f["size"]) for f in timeline["files"]] == [("a.pdf", 1000), ("b.png", 2048)]
    assert all(f["timelineId"] == timeline_id for f in timeline["files"])
    assert {"createdAt", "updatedAt"} <= set(timeline)


def test_numeric_string_size_is_accepted(api_client):
    """Sizes sent as numeric strings are stored as integers."""
    timeline_id = create(
        api_client,
        files=[{"fileName": "a.pdf", "url": "https://files.test/a.pdf", "size": "500000"}],
    ).json()["timelineId"]

    timeline = api_client.get(f"/api/timelines/{timeline_id}").json()

    assert timeline["files"][0]["size"] == 500000


def test_create_without_files_has_empty_array(api_client):
    timeline_id = create(api_client).json()["timelineId"]

    timeline = api_client.get(f"/api/timelines/{timeline_id}").json()

    assert timeline["files"] == []


def test_create_with_missing_case_name_is_422(api_client):
    response = api_client.post("/api/timelines", json={"areaOfLaw": "civil", "files": []})

    assert response.status_code == 422


def test_create_with_negative_size_is_422(api_client):
    response = create(
        api_client,
        files=[{"fileName": "a.pdf", "url": "https://files.test/a.pdf", "size": -1}],
    )

    assert response.status_code == 422


def test_list_empty_is_empty_array(api_client):
    response = api_client.get("/api/timelines")

    assert response.status_code == 200
    assert response.json() == []


def test_list_newest_first(api_client):
    first = create(api_client, case_name="First").json()["timelineId"]
    second = create(api_client, case_name="Second").json()["timelineId"]

    ids = [t["id"] for t in api_client.get("/api/timelines").json()]

    assert ids == [second, first]


def test_get_unknown_timeline_is_404(api_client):
    response = api_client.get(f"/api/timelines/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["detail"] == "Timeline not found"
    assert "debug_id" in response.json()
