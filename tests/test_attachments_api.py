"""
Attachment HTTP endpoint tests.
Covers: auth, multipart upload limits, list/count, rename, delete, download.
"""
from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient

from attachvault.core.config import settings
from attachvault.models.task import Task

pytestmark = pytest.mark.asyncio

PDF_BYTES = b"%PDF-1.7 quarterly numbers"


def _url(task_id: uuid.UUID, suffix: str = "") -> str:
    return f"/api/v1/tasks/{task_id}/attachments{suffix}"


async def _upload(
    client: AsyncClient,
    task_id: uuid.UUID,
    headers: dict[str, str],
    files: list[tuple[str, bytes, str]] | None = None,
):
    files = files or [("report.pdf", PDF_BYTES, "application/pdf")]
    return await client.post(
        _url(task_id),
        files=[("files", f) for f in files],
        headers=headers,
    )


class TestAuth:
    async def test_missing_token(self, client: AsyncClient, db_task: Task) -> None:
        response = await client.get(_url(db_task.id))
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"

    async def test_invalid_token(self, client: AsyncClient, db_task: Task) -> None:
        response = await client.get(
            _url(db_task.id), headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_TOKEN"


class TestUploadEndpoint:
    async def test_upload_single_file(
        self, client: AsyncClient, db_task: Task, auth_headers, user_id
    ) -> None:
        response = await _upload(client, db_task.id, auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["total_size"] == len(PDF_BYTES)
        [attachment] = data["attachments"]
        assert attachment["file_name"] == "report.pdf"
        assert attachment["file_type"] == "application/pdf"
        assert attachment["file_size"] == len(PDF_BYTES)
        assert attachment["uploaded_by"] == str(user_id)
        assert attachment["file_locator"].startswith(
            f"memory://task-attachments/attachments/{db_task.id}/report_"
        )

    async def test_upload_multiple_files(
        self, client: AsyncClient, db_task: Task, auth_headers
    ) -> None:
        response = await _upload(
            client,
            db_task.id,
            auth_headers,
            files=[
                ("a.pdf", b"aaaa", "application/pdf"),
                ("b.png", b"\x89PNGbb", "image/png"),
                ("c.jpg", b"c", "image/jpeg"),
            ],
        )
        assert response.status_code == 201
        assert response.json()["total_size"] == 4 + 6 + 1

    async def test_disallowed_type_rejected(
        self, client: AsyncClient, db_task: Task, auth_headers, object_store
    ) -> None:
        response = await _upload(
            client,
            db_task.id,
            auth_headers,
            files=[
                ("ok.pdf", b"fine", "application/pdf"),
                ("setup.exe", b"MZ", "application/x-msdownload"),
            ],
        )
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_FORMAT"
        assert object_store.objects == {}

    async def test_no_files(self, client: AsyncClient, db_task: Task, auth_headers) -> None:
        response = await client.post(_url(db_task.id), headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "BAD_REQUEST"

    async def test_too_many_files(self, client: AsyncClient, db_task: Task, auth_headers) -> None:
        files = [(f"f{i}.pdf", b"x", "application/pdf") for i in range(11)]
        response = await _upload(client, db_task.id, auth_headers, files=files)
        assert response.status_code == 400
        assert response.json()["error"] == "TOO_MANY_FILES"

    async def test_file_too_large(
        self, client: AsyncClient, db_task: Task, auth_headers, monkeypatch
    ) -> None:
        monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 1)
        big = b"0" * (1024 * 1024 + 1)
        response = await _upload(
            client, db_task.id, auth_headers, files=[("big.pdf", big, "application/pdf")]
        )
        assert response.status_code == 413
        assert response.json()["error"] == "FILE_TOO_LARGE"

    async def test_quota_exceeded_reports_sizes(
        self, client: AsyncClient, db_task: Task, auth_headers, monkeypatch
    ) -> None:
        monkeypatch.setattr(settings, "ATTACHMENT_QUOTA_MB", 1)
        first = await _upload(
            client, db_task.id, auth_headers, files=[("a.pdf", b"0" * 600_000, "application/pdf")]
        )
        assert first.status_code == 201

        response = await _upload(
            client, db_task.id, auth_headers, files=[("b.pdf", b"0" * 600_000, "application/pdf")]
        )

        assert response.status_code == 413
        body = response.json()
        assert body["error"] == "QUOTA_EXCEEDED"
        assert body["detail"] == "Total file size cannot exceed 1MB"
        assert body["current_size"] == 600_000
        assert body["attempted_size"] == 1_200_000

    async def test_unknown_task(self, client: AsyncClient, auth_headers) -> None:
        response = await _upload(client, uuid.uuid4(), auth_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"


class TestListEndpoints:
    async def test_list_and_count(self, client: AsyncClient, db_task: Task, auth_headers) -> None:
        await _upload(client, db_task.id, auth_headers)
        await _upload(
            client, db_task.id, auth_headers, files=[("pic.png", b"\x89PNG", "image/png")]
        )

        listing = await client.get(_url(db_task.id), headers=auth_headers)
        count = await client.get(_url(db_task.id, "/count"), headers=auth_headers)

        assert listing.status_code == 200
        assert [a["file_name"] for a in listing.json()["attachments"]] == ["report.pdf", "pic.png"]
        assert listing.json()["total_size"] == len(PDF_BYTES) + 4
        assert count.json() == {"count": 2}

    async def test_empty_task(self, client: AsyncClient, db_task: Task, auth_headers) -> None:
        response = await client.get(_url(db_task.id), headers=auth_headers)
        assert response.json() == {"attachments": [], "total_size": 0}


class TestSingleAttachmentEndpoints:
    async def test_download(self, client: AsyncClient, db_task: Task, auth_headers) -> None:
        uploaded = (await _upload(client, db_task.id, auth_headers)).json()["attachments"][0]

        response = await client.get(
            _url(db_task.id, f"/{uploaded['id']}/download"), headers=auth_headers
        )

        assert response.status_code == 200
        assert response.content == PDF_BYTES
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="report.pdf"' in response.headers["content-disposition"]

    async def test_download_non_ascii_name(
        self, client: AsyncClient, db_task: Task, auth_headers
    ) -> None:
        uploaded = (
            await _upload(
                client, db_task.id, auth_headers, files=[("résumé.pdf", b"cv", "application/pdf")]
            )
        ).json()["attachments"][0]

        response = await client.get(
            _url(db_task.id, f"/{uploaded['id']}/download"), headers=auth_headers
        )

        disposition = response.headers["content-disposition"]
        assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in disposition

    async def test_download_unknown_attachment(
        self, client: AsyncClient, db_task: Task, auth_headers
    ) -> None:
        response = await client.get(
            _url(db_task.id, f"/{uuid.uuid4()}/download"), headers=auth_headers
        )
        assert response.status_code == 404

    async def test_delete_by_other_user_forbidden(
        self, client: AsyncClient, db_task: Task, auth_headers, other_headers, object_store
    ) -> None:
        uploaded = (await _upload(client, db_task.id, auth_headers)).json()["attachments"][0]

        response = await client.delete(_url(db_task.id, f"/{uploaded['id']}"), headers=other_headers)

        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"
        assert object_store.exists(uploaded["file_locator"])

    async def test_delete_by_uploader(
        self, client: AsyncClient, db_task: Task, auth_headers, object_store
    ) -> None:
        uploaded = (await _upload(client, db_task.id, auth_headers)).json()["attachments"][0]

        response = await client.delete(_url(db_task.id, f"/{uploaded['id']}"), headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Attachment deleted successfully"}
        assert not object_store.exists(uploaded["file_locator"])
        listing = await client.get(_url(db_task.id), headers=auth_headers)
        assert listing.json()["attachments"] == []

    async def test_rename(self, client: AsyncClient, db_task: Task, auth_headers) -> None:
        uploaded = (await _upload(client, db_task.id, auth_headers)).json()["attachments"][0]

        response = await client.patch(
            _url(db_task.id, f"/{uploaded['id']}"),
            json={"file_name": "  Q3 report.pdf "},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["file_name"] == "Q3 report.pdf"
        assert response.json()["file_locator"] == uploaded["file_locator"]

    async def test_rename_blank(self, client: AsyncClient, db_task: Task, auth_headers) -> None:
        uploaded = (await _upload(client, db_task.id, auth_headers)).json()["attachments"][0]

        response = await client.patch(
            _url(db_task.id, f"/{uploaded['id']}"),
            json={"file_name": "   "},
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
