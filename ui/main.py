"""
CaseNote Frontend

Streamlit-based user interface for the CaseNote API. Captures notes either
by typing or by scanning a document (image or PDF) and correcting the
transcript, then lists, edits and deletes the caller's notes.

Run locally:
    streamlit run ui/main.py

Get a development token:
    python scripts/issue_token.py dr.adams@example.com
"""

from __future__ import annotations

import base64
import os
import time
from typing import Any

import httpx
import streamlit as st

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

API_URL = os.getenv("API_URL", "http://localhost:8000")
NOTES_ENDPOINT = f"{API_URL}/api/v1/notes"
INGEST_ENDPOINT = f"{API_URL}/api/v1/ingest"
UPLOADS_ENDPOINT = f"{API_URL}/api/v1/uploads"

REQUEST_TIMEOUT = 30.0
# OCR on large scans can take a while
POLL_INTERVAL = 0.5
POLL_TIMEOUT = 180.0


# ---------------------------------------------------------------------------
# Page Configuration
# ---------------------------------------------------------------------------

st.set_page_config(
    page_title="CaseNote",
    page_icon="🩺",
    layout="wide",
    initial_sidebar_state="expanded",
)


def init_session_state() -> None:
    """Initialize session state variables."""
    if "token" not in st.session_state:
        st.session_state.token = os.getenv("CASENOTE_TOKEN", "")
    if "ingest" not in st.session_state:
        st.session_state.ingest = None  # last IngestionStatus dict
    if "scan_file" not in st.session_state:
        st.session_state.scan_file = None  # (name, bytes, media type)


init_session_state()


# ---------------------------------------------------------------------------
# API Client Functions
# ---------------------------------------------------------------------------


def _client() -> httpx.Client:
    return httpx.Client(
        timeout=REQUEST_TIMEOUT,
        headers={"Authorization": f"Bearer {st.session_state.token}"},
    )


def _error_message(e: httpx.HTTPStatusError) -> str:
    try:
        body = e.response.json()
    except ValueError:
        return f"API Error: {e.response.status_code}"
    return str(body.get("error") or body.get("detail") or e.response.status_code)


def list_notes() -> list[dict[str, Any]]:
    with _client() as client:
        response = client.get(NOTES_ENDPOINT)
        response.raise_for_status()
        return response.json()["notes"]


def create_note(payload: dict[str, Any]) -> str:
    with _client() as client:
        response = client.post(NOTES_ENDPOINT, json=payload)
        response.raise_for_status()
        return response.json()["id"]


def update_note(payload: dict[str, Any]) -> None:
    with _client() as client:
        response = client.patch(NOTES_ENDPOINT, json=payload)
        response.raise_for_status()


def delete_note(note_id: str) -> None:
    with _client() as client:
        response = client.request("DELETE", NOTES_ENDPOINT, json={"id": note_id})
        response.raise_for_status()


def start_ingestion(file_name: str, file_bytes: bytes, media_type: str) -> dict[str, Any]:
    """Select a file for transcription; returns the initial status."""
    with _client() as client:
        response = client.post(
            INGEST_ENDPOINT,
            files={"file": (file_name, file_bytes, media_type)},
        )
        response.raise_for_status()
        return response.json()


def ingestion_status() -> dict[str, Any]:
    with _client() as client:
        response = client.get(INGEST_ENDPOINT)
        response.raise_for_status()
        return response.json()


def correct_transcript(transcript: str) -> dict[str, Any]:
    """Store a manual correction on the completed job."""
    with _client() as client:
        response = client.patch(INGEST_ENDPOINT, json={"transcript": transcript})
        response.raise_for_status()
        return response.json()


def reset_ingestion() -> None:
    with _client() as client:
        client.delete(INGEST_ENDPOINT).raise_for_status()


def upload_file(file_name: str, file_bytes: bytes, media_type: str) -> dict[str, Any]:
    with _client() as client:
        response = client.post(
            UPLOADS_ENDPOINT,
            files={"file": (file_name, file_bytes, media_type)},
        )
        response.raise_for_status()
        return response.json()


def check_api_health() -> bool:
    """Check if the CaseNote API is reachable."""
    try:
        with httpx.Client(timeout=5.0) as client:
            response = client.get(f"{API_URL}/health")
            return response.status_code == 200
    except httpx.RequestError:
        return False


# ---------------------------------------------------------------------------
# UI Components
# ---------------------------------------------------------------------------


def render_sidebar() -> bool:
    """Render API status and token input. Returns True when ready."""
    with st.sidebar:
        st.markdown("### 🩺 CaseNote")

        if check_api_health():
            st.success("API Connected", icon="🟢")
        else:
            st.error("API Unreachable", icon="🔴")
            st.caption(f"Endpoint: `{API_URL}`")
            return False

        st.session_state.token = st.text_input(
            "Access token",
            value=st.session_state.token,
            type="password",
            help="Bearer token identifying the note owner",
        )
        if not st.session_state.token:
            st.info("Enter an access token to continue.")
            return False
    return True


def poll_until_complete(placeholder: Any) -> dict[str, Any]:
    """Poll the ingestion status, updating a progress bar, until terminal."""
    bar = placeholder.progress(0, text="Previewing...")
    deadline = time.monotonic() + POLL_TIMEOUT
    status = ingestion_status()
    while not status["isComplete"] and time.monotonic() < deadline:
        bar.progress(status["progressPercent"], text=f"{status['stage'].title()}...")
        time.sleep(POLL_INTERVAL)
        status = ingestion_status()
    bar.progress(status["progressPercent"], text=status["stage"].title())
    return status


def render_preview(data_uri: str | None) -> None:
    """Show the preview returned by POST /ingest (image or PDF indicator)."""
    if not data_uri:
        return
    header, _, encoded = data_uri.partition(",")
    if header.startswith("data:image/svg"):
        st.markdown(
            f'<img src="{data_uri}" width="96" alt="PDF document">',
            unsafe_allow_html=True,
        )
    else:
        st.image(base64.b64decode(encoded), width=240)


def render_scan_capture() -> None:
    """Select a scan, show preview and progress, edit and save the transcript."""
    uploaded = st.file_uploader(
        "Image or PDF (first page only)",
        type=["png", "jpg", "jpeg", "webp", "tif", "tiff", "bmp", "pdf"],
    )
    if uploaded is not None and st.button("Transcribe", type="primary"):
        media_type = uploaded.type or "application/octet-stream"
        st.session_state.scan_file = (uploaded.name, uploaded.getvalue(), media_type)
        try:
            status = start_ingestion(*st.session_state.scan_file)
            render_preview(status["previewDataUri"])
            st.session_state.ingest = poll_until_complete(st.empty())
        except httpx.HTTPStatusError as e:
            st.error(_error_message(e))
        except httpx.RequestError as e:
            st.error(f"Connection Error: {e}")

    status = st.session_state.ingest
    if not status or not status["isComplete"]:
        return

    if status["stage"] == "failed":
        st.warning(status["errorMessage"])

    title = st.text_input("Title", key="scan_title")
    transcript = st.text_area("Transcript", value=status["transcript"] or "", height=240)

    if st.button("Save scan note"):
        if not title.strip():
            st.error("Title is required.")
            return
        if transcript != (status["transcript"] or ""):
            try:
                st.session_state.ingest = correct_transcript(transcript)
            except httpx.HTTPStatusError as e:
                st.error(_error_message(e))
                return

        name, data, media_type = st.session_state.scan_file
        payload: dict[str, Any] = {
            "title": title,
            "origin": "scan",
            "transcript": transcript,
        }
        try:
            stored = upload_file(name, data, media_type)
            payload["attachment"] = {
                "url": stored["url"],
                "storageId": stored["storageId"],
                "fileName": name,
                "mimeType": media_type,
            }
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            # Keep the transcript even when the original can't be stored
            st.warning(f"Upload failed, saving transcript only ({e}).")

        try:
            create_note(payload)
            reset_ingestion()
            st.session_state.ingest = None
            st.session_state.scan_file = None
            st.success("Scan note saved.")
        except httpx.HTTPStatusError as e:
            st.error(_error_message(e))


def render_manual_capture() -> None:
    with st.form("manual_note", clear_on_submit=True):
        title = st.text_input("Title")
        content = st.text_area("Content (HTML or Markdown)", height=200)
        if st.form_submit_button("Save note", type="primary"):
            try:
                create_note({"title": title, "origin": "manual", "richContent": content})
                st.success("Note saved.")
            except httpx.HTTPStatusError as e:
                st.error(_error_message(e))


def render_note(note: dict[str, Any]) -> None:
    is_scan = note["origin"] == "scan"
    content_key = "transcript" if is_scan else "richContent"
    label = "📄" if is_scan else "✏️"

    with st.expander(f"{label} {note['title']}  ·  {note.get('createdAt') or ''}"):
        attachment = note.get("attachment")
        if attachment:
            url = attachment["url"]
            if url.startswith("/"):
                url = f"{API_URL}{url}"
            st.markdown(f"Original: [{attachment['fileName'] or 'file'}]({url})")

        with st.form(f"edit_{note['id']}"):
            title = st.text_input("Title", value=note["title"])
            content = st.text_area(
                "Transcript" if is_scan else "Content",
                value=note.get(content_key) or "",
                height=160,
            )
            save, remove = st.columns(2)
            if save.form_submit_button("Update"):
                try:
                    update_note({"id": note["id"], "title": title, content_key: content})
                    st.rerun()
                except httpx.HTTPStatusError as e:
                    st.error(_error_message(e))
            if remove.form_submit_button("Delete"):
                try:
                    delete_note(note["id"])
                    st.rerun()
                except httpx.HTTPStatusError as e:
                    st.error(_error_message(e))


def render_notes() -> None:
    st.subheader("My notes")
    try:
        notes = list_notes()
    except httpx.HTTPStatusError as e:
        st.error(_error_message(e))
        return
    if not notes:
        st.caption("No notes yet.")
    for note in notes:
        render_note(note)


# ---------------------------------------------------------------------------
# Main Entry Point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main application entry point."""
    if not render_sidebar():
        st.title("CaseNote")
        return

    st.title("CaseNote")
    scan_tab, manual_tab = st.tabs(["Scan", "Type"])
    with scan_tab:
        render_scan_capture()
    with manual_tab:
        render_manual_capture()

    st.divider()
    render_notes()


if __name__ == "__main__":
    main()
