from __future__ import annotations

import base64
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from recipe_importer.app.deps import CurrentUser, get_current_user, get_import_service
from recipe_importer.app.domain.errors import JobRepositoryError
from recipe_importer.app.domain.models import JobStatus, SourceKind
from recipe_importer.app.routers.imports import router
from recipe_importer.app.services.import_service import ImportService
from tests.unit.stubs import ImportJobRepositoryStub

USER_ID = uuid4()


class RecordingDispatch:
    def __init__(self) -> None:
        self.requests = []

    async def __call__(self, request) -> None:
        self.requests.append(request)


class BrokenJobRepository(ImportJobRepositoryStub):
    def create_job(self, user_id, source_kind, content_reference):
        raise JobRepositoryError("create_job", "connection refused")


@pytest.fixture
def jobs() -> ImportJobRepositoryStub:
    return ImportJobRepositoryStub()


@pytest.fixture
def dispatch() -> RecordingDispatch:
    return RecordingDispatch()


def build_client(jobs, dispatch) -> TestClient:
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(id=str(USER_ID), email="cook@example.com")
    app.dependency_overrides[get_import_service] = lambda: ImportService(jobs, dispatch)
    return TestClient(app)


@pytest.fixture
def client(jobs, dispatch) -> TestClient:
    return build_client(jobs, dispatch)


class TestSubmitImport:
    def test_returns_pending_job(self, client, jobs, dispatch) -> None:
        response = client.post("/v1/imports", json={"content_reference": "https://youtu.be/dQw4w9WgXcQ"})

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "pending"
        assert body["source_type"] == "video-youtube"
        assert len(dispatch.requests) == 1
        assert str(dispatch.requests[0].job_id) == body["id"]

    def test_unsupported_url_is_accepted_then_fails_later(self, client) -> None:
        response = client.post("/v1/imports", json={"content_reference": "ftp://files.example.com/x"})

        assert response.status_code == 202
        assert response.json()["source_type"] == "unknown"

    def test_rejects_unknown_hint(self, client) -> None:
        response = client.post(
            "/v1/imports",
            json={"content_reference": "https://food.example.com/pie", "source_hint": "podcast"},
        )

        assert response.status_code == 422

    def test_storage_outage(self, dispatch) -> None:
        client = build_client(BrokenJobRepository(), dispatch)

        response = client.post("/v1/imports", json={"content_reference": "https://food.example.com/pie"})

        assert response.status_code == 503
        assert dispatch.requests == []


class TestSubmitPhoto:
    def test_accepts_data_url(self, client, dispatch) -> None:
        encoded = base64.b64encode(b"\xff\xd8\xff\xe0jpeg").decode()

        response = client.post(
            "/v1/imports/photo",
            json={"image_base64": f"data:image/jpeg;base64,{encoded}", "mime_type": "image/JPEG"},
        )

        assert response.status_code == 202
        assert response.json()["source_type"] == "image"
        assert dispatch.requests[0].image_bytes == b"\xff\xd8\xff\xe0jpeg"
        assert dispatch.requests[0].mime_type == "image/jpeg"

    def test_rejects_non_image_mime_type(self, client) -> None:
        encoded = base64.b64encode(b"%PDF").decode()

        response = client.post("/v1/imports/photo", json={"image_base64": encoded, "mime_type": "application/pdf"})

        assert response.status_code == 400

    def test_rejects_invalid_base64(self, client, dispatch) -> None:
        response = client.post("/v1/imports/photo", json={"image_base64": "not base64!!"})

        assert response.status_code == 400
        assert dispatch.requests == []


class TestReadImports:
    def test_status_of_completed_job(self, client, jobs) -> None:
        job = jobs.create_job(USER_ID, SourceKind.WEB, "https://food.example.com/pie")
        jobs.mark_processing(job.id)
        recipe_id = uuid4()
        jobs.mark_completed(job.id, recipe_id, 0.82, {"recipe_id": str(recipe_id)})

        response = client.get(f"/v1/imports/{job.id}")

        assert response.status_code == 200
        assert response.json() == {
            "id": str(job.id),
            "status": "completed",
            "recipe_id": str(recipe_id),
            "error_message": None,
            "confidence_score": 0.82,
        }

    def test_status_of_someone_elses_job(self, client, jobs) -> None:
        job = jobs.create_job(uuid4(), SourceKind.WEB, "https://food.example.com/pie")

        assert client.get(f"/v1/imports/{job.id}").status_code == 404

    def test_malformed_job_id(self, client) -> None:
        assert client.get("/v1/imports/not-a-uuid").status_code == 400

    def test_list_and_active(self, client, jobs) -> None:
        finished = jobs.create_job(USER_ID, SourceKind.WEB, "https://food.example.com/one")
        jobs.mark_failed(finished.id, "Low confidence: 0.3")
        running = jobs.create_job(USER_ID, SourceKind.VIDEO_TIKTOK, "https://www.tiktok.com/@chef/video/1")

        listed = client.get("/v1/imports", params={"limit": 5})
        active = client.get("/v1/imports/active")

        assert listed.status_code == 200
        assert listed.json()["limit"] == 5
        assert {job["status"] for job in listed.json()["jobs"]} == {"failed", "pending"}
        assert active.json()["id"] == str(running.id)
        assert active.json()["status"] == JobStatus.PENDING.value

    def test_no_active_job(self, client) -> None:
        response = client.get("/v1/imports/active")

        assert response.status_code == 200
        assert response.json() is None
