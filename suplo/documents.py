from __future__ import annotations

import io
from typing import Optional

import httpx

from .errors import TransportError, UnsupportedInputError
from .logger_factory import get_logger

SUPPORTED_TYPES = ("pdf", "docx")
UNSUPPORTED_MESSAGE = "Sorry Document type not supported"

log = get_logger("Documents")


async def download_file(url: str, token: str, *, client: Optional[httpx.AsyncClient] = None, timeout: float = 60.0) -> bytes:
    """Fetch a Slack `url_private` file with the bot token."""
    headers = {"Authorization": f"Bearer {token}"}
    owns = client is None
    http = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    try:
        r = await http.get(url, headers=headers)
        r.raise_for_status()
        return r.content
    except httpx.HTTPError as e:
        raise TransportError("files.download", str(e)) from e
    finally:
        if owns:
            await http.aclose()


def extract_pdf(data: bytes) -> str:
    from pypdf import PdfReader

    reader = PdfReader(io.BytesIO(data))
    pages = [(page.extract_text() or "").strip() for page in reader.pages]
    return "\n\n".join(p for p in pages if p)


def extract_docx(data: bytes) -> str:
    from docx import Document

    doc = Document(io.BytesIO(data))
    return "\n".join(p.text for p in doc.paragraphs if p.text)


def process_document(data: bytes, file_type: str | None) -> str:
    """Extract plain text by Slack filetype ("pdf" | "docx")."""
    kind = (file_type or "").strip().lower()
    if kind == "pdf":
        text = extract_pdf(data)
    elif kind == "docx":
        text = extract_docx(data)
    else:
        raise UnsupportedInputError(UNSUPPORTED_MESSAGE)
    log.debug(f"document-extracted type={kind} chars={len(text)}")
    return text
