"""
Ingestion API Unit Tests

Exercises /api/v1/ingest with the mock recognizer: select a file, poll the
status object, correct the transcript and reset.
"""

from __future__ import annotations

import pytest

from casenote.services.ingestion import FALLBACK_TRANSCRIPT, PDF_PREVIEW_DATA_URI
from casenote.services.recognizer import MOCK_TRANSCRIPT

OWNER_A = "dr.adams@example.com"
OWNER_B = "dr.baker@example.com"

INGEST_URL = "/api/v1/ingest"


async def settle(registry, owner_id: str) -> None:
    """Wait for the owner's background job to finish."""
    pipeline = registry.peek(owner_id)
    assert pipeline is not None
    await pipeline.wait()


@pytest.mark.asyncio
async def test_requires_authentication(api_client):
    res = await api_client.get(INGEST_URL)
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_idle_status(api_client, auth_headers):
    res = await api_client.get(INGEST_URL, headers=auth_headers(OWNER_A))
    assert res.status_code == 200
    body = res.json()
    assert body["stage"] == "idle"
    assert body["progressPercent"] == 0
    assert body["isComplete"] is False
    assert body["jobId"] is None


@pytest.mark.asyncio
async def test_image_flow(api_client, auth_headers, registry, png_bytes):
    headers = auth_headers(OWNER_A)

    res = await api_client.post(
        INGEST_URL,
        files={"file": ("scan.png", png_bytes, "image/png")},
        headers=headers,
    )
    assert res.status_code == 202
    accepted = res.json()
    assert accepted["fileName"] == "scan.png"
    assert accepted["mediaType"] == "image/png"
    assert accepted["previewDataUri"].startswith("data:image/png;base64,")
    assert accepted["isComplete"] is False

    await settle(registry, OWNER_A)

    body = (await api_client.get(INGEST_URL, headers=headers)).json()
    assert body["jobId"] == accepted["jobId"]
    assert body["stage"] == "done"
    assert body["progressPercent"] == 100
    assert body["transcript"] == MOCK_TRANSCRIPT.strip()
    assert body["isComplete"] is True
    assert body["errorMessage"] is None

    # Another owner has their own (idle) pipeline
    other = (await api_client.get(INGEST_URL, headers=auth_headers(OWNER_B))).json()
    assert other["stage"] == "idle"


@pytest.mark.asyncio
async def test_pdf_flow(api_client, auth_headers, registry, pdf_bytes):
    headers = auth_headers(OWNER_A)

    res = await api_client.post(
        INGEST_URL,
        files={"file": ("visit.pdf", pdf_bytes, "application/pdf")},
        headers=headers,
    )
    assert res.status_code == 202
    assert res.json()["previewDataUri"] == PDF_PREVIEW_DATA_URI

    await settle(registry, OWNER_A)

    body = (await api_client.get(INGEST_URL, headers=headers)).json()
    assert body["stage"] == "done"
    assert body["transcript"] == MOCK_TRANSCRIPT.strip()


@pytest.mark.asyncio
async def test_corrupt_pdf_falls_back(api_client, auth_headers, registry):
    headers = auth_headers(OWNER_A)

    await api_client.post(
        INGEST_URL,
        files={"file": ("broken.pdf", b"%PDF-1.4 garbage", "application/pdf")},
        headers=headers,
    )
    await settle(registry, OWNER_A)

    body = (await api_client.get(INGEST_URL, headers=headers)).json()
    assert body["stage"] == "failed"
    assert body["transcript"] == FALLBACK_TRANSCRIPT
    assert body["errorMessage"] == FALLBACK_TRANSCRIPT
    assert body["isComplete"] is True


@pytest.mark.asyncio
async def test_unsupported_type_fails_immediately(api_client, auth_headers):
    res = await api_client.post(
        INGEST_URL,
        files={"file": ("notes.txt", b"plain text", "text/plain")},
        headers=auth_headers(OWNER_A),
    )
    assert res.status_code == 202
    body = res.json()
    assert body["stage"] == "failed"
    assert body["transcript"] == FALLBACK_TRANSCRIPT
    assert body["previewDataUri"] is None


@pytest.mark.asyncio
async def test_octet_stream_is_guessed_from_name(
    api_client, auth_headers, registry, png_bytes
):
    headers = auth_headers(OWNER_A)
    res = await api_client.post(
        INGEST_URL,
        files={"file": ("photo.png", png_bytes, "application/octet-stream")},
        headers=headers,
    )
    assert res.json()["mediaType"] == "image/png"
    await settle(registry, OWNER_A)


@pytest.mark.asyncio
async def test_correct_and_reset(api_client, auth_headers, registry, png_bytes):
    headers = auth_headers(OWNER_A)
    await api_client.post(
        INGEST_URL,
        files={"file": ("scan.png", png_bytes, "image/png")},
        headers=headers,
    )
    await settle(registry, OWNER_A)

    res = await api_client.patch(
        INGEST_URL, json={"transcript": "BP 125/85"}, headers=headers
    )
    assert res.status_code == 200
    assert res.json()["transcript"] == "BP 125/85"
    assert res.json()["edited"] is True

    res = await api_client.delete(INGEST_URL, headers=headers)
    assert res.status_code == 200
    assert res.json()["stage"] == "idle"
    assert registry.peek(OWNER_A) is None

    body = (await api_client.get(INGEST_URL, headers=headers)).json()
    assert body["stage"] == "idle"


@pytest.mark.asyncio
async def test_correct_without_job_conflicts(api_client, auth_headers):
    res = await api_client.patch(
        INGEST_URL, json={"transcript": "early"}, headers=auth_headers(OWNER_A)
    )
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_missing_file(api_client, auth_headers):
    res = await api_client.post(INGEST_URL, headers=auth_headers(OWNER_A))
    assert res.status_code == 400
