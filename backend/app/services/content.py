from __future__ import annotations

import base64

from app.core.config import settings

PDF_TYPE = "application/pdf"
TEXT_TYPE = "text/plain"


def extract_scan_content(raw: bytes, *, file_name: str, file_type: str) -> str:
    """
    Bounded textual stand-in for a file, as handed to the scanner.

    PDFs are not parsed: the model only sees a truncated base64 prefix of the raw bytes.
    Images contribute their name only.
    """
    if file_type == TEXT_TYPE:
        return raw.decode("utf-8", errors="replace")
    if file_type == PDF_TYPE:
        encoded = base64.b64encode(raw).decode("ascii")
        return f"[PDF Document - Base64 encoded]\n{encoded[: settings.PDF_SCAN_PREVIEW_CHARS]}..."
    return f"[Image file: {file_name}]"
