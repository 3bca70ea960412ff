# listing-ai-backend/tests/test_api.py

import os

import pytest
from fastapi.testclient import TestClient

from contracts import JobStatus
from dependencies import get_dispatch, get_session_factory, get_storage
from errors import PersistenceError
from job_store import JobStore
from main import app
from models import Job


@pytest.fixture
def dispatched():
    return []


@pytest.fixture
def client(session_factory, storage, dispatched):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_dispatch] = lambda: dispatched.append
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(client, filename="demo.mp4", hint="water bottle", user_id="user-1"):
    return client.post(
        "/jobs/",
        files={"file": (filename, b"fake video bytes", "video/mp4")},
        data={"user_hint": hint, "user_id": user_id},
    )


def test_root_reports_running(client):
    assert client.get("/").status_code == 200


def test_upload_creates_job_and_returns_immediately(client, dispatched, storage):
    response = upload(client)

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "PROCESSING"
    assert len(dispatched) == 1
    assert dispatched[0].job_id == body["job_id"]
    assert storage.exists(dispatched[0].video_location)


def test_upload_rejects_non_video_files(client, dispatched):
    response = upload(client, filename="photo.png")

    assert response.status_code == 400
    assert response.json()["status"] == "fail"
    assert dispatched == []


def test_upload_rejects_blank_hint(client, dispatched):
    response = upload(client, hint="   ")

    assert response.status_code == 400
    assert dispatched == []


def stored_uploads(storage):
    uploads = os.path.join(storage.root, "uploads")
    return os.listdir(uploads) if os.path.isdir(uploads) else []


def test_upload_with_blank_user_id_leaves_no_file_behind(client, dispatched, storage):
    response = upload(client, user_id="   ")

    assert response.status_code == 400
    assert dispatched == []
    assert stored_uploads(storage) == []


def test_upload_removes_the_video_when_the_job_cannot_be_recorded(client, dispatched, storage, monkeypatch):
    def broken_create(self, user_id, video_location, user_hint):
        raise PersistenceError("Could not create job")

    monkeypatch.setattr(JobStore, "create", broken_create)

    response = upload(client)

    assert response.status_code == 500
    assert dispatched == []
    assert stored_uploads(storage) == []


def test_upload_removes_the_video_when_the_queue_is_down(client, storage, session_factory):
    def broken_dispatch(message):
        raise ConnectionError("broker unreachable")

    app.dependency_overrides[get_dispatch] = lambda: broken_dispatch

    response = upload(client)

    assert response.status_code == 503
    assert stored_uploads(storage) == []
    with session_factory() as db:
        assert db.query(Job).one().status == JobStatus.FAILED


def test_status_of_new_job_is_processing(client):
    job_id = upload(client).json()["job_id"]

    response = client.get(f"/jobs/{job_id}")

    assert response.status_code == 200
    assert response.json()["status"] == "PROCESSING"
    assert response.json()["product"] is None


def test_status_of_unknown_job_is_404(client):
    response = client.get("/jobs/unknown")

    assert response.status_code == 404
    assert response.json() == {"status": "fail", "message": "Job not found."}


def test_finished_job_exposes_product_and_product_routes(client, dispatched, executor):
    job_id = upload(client).json()["job_id"]
    executor.run(dispatched[0])

    status = client.get(f"/jobs/{job_id}").json()
    assert status["status"] == "SUCCESS"
    product = status["product"]
    assert product["image"]["frame_timestamp"] == 12.0

    listing = client.get("/products/", params={"user_id": "user-1"}).json()
    assert listing["total_count"] == 1
    assert listing["is_more"] is False
    assert listing["products"][0]["id"] == product["id"]

    fetched = client.get(f"/products/{product['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Insulated Steel Water Bottle 1L"

    updated = client.put(f"/products/{product['id']}", json={"title": "Steel Bottle", "keywords": ["bottle"]})
    assert updated.status_code == 200
    assert updated.json()["title"] == "Steel Bottle"
    assert updated.json()["keywords"] == ["bottle"]
    assert updated.json()["bullet_points"] == ["Double-wall insulation", "Leak-proof lid"]

    rejected = client.put(f"/products/{product['id']}", json={"bullet_points": []})
    assert rejected.status_code == 422


def test_failed_job_exposes_error(client, dispatched, executor, stubs):
    stubs.errors["detect"] = RuntimeError("boom")
    job_id = upload(client).json()["job_id"]
    executor.run(dispatched[0])

    body = client.get(f"/jobs/{job_id}").json()

    assert body["status"] == "FAILED"
    assert body["stage"] == "DETECTION"
    assert body["error"] == "Unexpected RuntimeError during DETECTION"


def test_product_list_requires_user(client):
    response = client.get("/products/")

    assert response.status_code == 400
    assert response.json()["message"] == "User id is required"


def test_unknown_product_is_404(client):
    assert client.get("/products/nope").status_code == 404


def test_media_outside_root_is_forbidden(client):
    assert client.get("/media/", params={"location": "../../etc/passwd"}).status_code == 403


def test_media_serves_stored_frames(client, storage):
    location = "frames/a.jpg"
    with open(storage.prepare(location), "wb") as f:
        f.write(b"jpeg")

    response = client.get("/media/", params={"location": location})

    assert response.status_code == 200
    assert response.content == b"jpeg"
    assert response.headers["content-type"] == "image/jpeg"
