"""
Extracts structured attachment metadata from plain message text.
"""

import re
from typing import List, Optional

from services.chat_service.models import Attachment


URL_PATTERN = re.compile(r"(https?://\S+)")
IMAGE_URL_HINT = "image url:"
TRAILING_PUNCTUATION = ".,;)]}"

IMAGE_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".svg": "image/svg+xml",
}

DOCUMENT_MIME_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".txt": "text/plain",
    ".rtf": "application/octet-stream",
    ".csv": "text/csv",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


def extract_from_text(text: Optional[str]) -> List[Attachment]:
    """
    Find every distinct http(s) URL in the text and classify it

    Args:
        text: Message text

    Returns:
        Attachments in order of first appearance
    """
    if not text or not text.strip():
        return []

    lower = text.lower()
    seen = set()
    attachments = []

    for match in URL_PATTERN.finditer(text):
        url = _sanitize_url(match.group(1))
        if not url or url in seen:
            continue
        seen.add(url)

        # "Image URL: https://..." marks an image even without an extension
        context = lower[max(0, match.start() - 15):match.start()]
        attachment_type = _detect_type(url, IMAGE_URL_HINT in context)
        attachments.append(Attachment(
            type=attachment_type,
            url=url,
            mime_type=_infer_mime_type(url, attachment_type)
        ))

    return attachments


def from_url(url: Optional[str]) -> Optional[Attachment]:
    """Build an attachment for a single URL, or None if it is blank"""
    sanitized = _sanitize_url(url)
    if not sanitized:
        return None
    attachment_type = _detect_type(sanitized, False)
    return Attachment(
        type=attachment_type,
        url=sanitized,
        mime_type=_infer_mime_type(sanitized, attachment_type)
    )


def _sanitize_url(url: Optional[str]) -> Optional[str]:
    if url is None:
        return None
    return url.strip().rstrip(TRAILING_PUNCTUATION)


def _base_path(url: str) -> str:
    return url.split("?", 1)[0].lower()


def _extension(url: str) -> str:
    path = _base_path(url)
    dot = path.rfind(".")
    if dot < 0 or "/" in path[dot:]:
        return ""
    return path[dot:]


def _detect_type(url: str, explicit_image: bool) -> str:
    extension = _extension(url)
    if explicit_image or extension in IMAGE_MIME_TYPES:
        return "image"
    if extension in DOCUMENT_MIME_TYPES:
        return "document"
    return "link"


def _infer_mime_type(url: str, attachment_type: str) -> str:
    extension = _extension(url)
    if attachment_type == "image":
        return IMAGE_MIME_TYPES.get(extension, "image/png")
    if attachment_type == "document":
        return DOCUMENT_MIME_TYPES.get(extension, "application/octet-stream")
    return "text/uri-list"
