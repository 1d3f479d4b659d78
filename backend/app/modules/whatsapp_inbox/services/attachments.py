"""
Outbound attachment helpers: decode the upload, decide which Z-API send
operation fits it, and build the data URL Z-API expects.
"""
import base64
import binascii
import os
from dataclasses import dataclass
from typing import Optional

from app.modules.whatsapp_inbox.constants import (
    AttachmentKind,
    AUDIO_EXTENSIONS,
    DEFAULT_DOCUMENT_EXTENSION,
    DOCUMENT_EXTENSIONS_BY_MIME,
    IMAGE_EXTENSIONS,
    MEDIA_FALLBACK_BODIES,
    VIDEO_EXTENSIONS,
)
from app.shared.utils.exceptions import InvalidAttachmentError


@dataclass
class PreparedAttachment:
    kind: AttachmentKind
    data_url: str
    mime_type: str
    file_name: Optional[str]
    extension: str

    def descriptor(self) -> dict:
        """What gets stored on the message row (never the bytes)."""
        media = {"type": self.kind.value, "mime_type": self.mime_type}
        if self.file_name:
            media["file_name"] = self.file_name
        return media

    def fallback_body(self) -> str:
        if self.kind == AttachmentKind.DOCUMENT and self.file_name:
            return f"[document: {self.file_name}]"
        return MEDIA_FALLBACK_BODIES.get(self.kind, "[attachment]")


def _file_extension(file_name: Optional[str]) -> str:
    return os.path.splitext(file_name or "")[1].lstrip(".").lower()


def infer_kind(mime_type: Optional[str], file_name: Optional[str]) -> AttachmentKind:
    """Mime type first, then file extension; anything unknown is a document."""
    mime = (mime_type or "").lower()
    if mime.startswith("image/"):
        return AttachmentKind.IMAGE
    if mime.startswith("audio/"):
        return AttachmentKind.AUDIO
    if mime.startswith("video/"):
        return AttachmentKind.VIDEO

    ext = _file_extension(file_name)
    if ext in IMAGE_EXTENSIONS:
        return AttachmentKind.IMAGE
    if ext in AUDIO_EXTENSIONS:
        return AttachmentKind.AUDIO
    if ext in VIDEO_EXTENSIONS:
        return AttachmentKind.VIDEO
    return AttachmentKind.DOCUMENT


def document_extension(mime_type: Optional[str], file_name: Optional[str]) -> str:
    ext = _file_extension(file_name)
    if ext:
        return ext
    return DOCUMENT_EXTENSIONS_BY_MIME.get((mime_type or "").lower(), DEFAULT_DOCUMENT_EXTENSION)


def prepare_attachment(
    data: str,
    mime_type: Optional[str] = None,
    file_name: Optional[str] = None,
    kind: Optional[str] = None,
) -> PreparedAttachment:
    """
    Accepts raw base64 or a data URL ("data:image/png;base64,....").

    Raises:
        InvalidAttachmentError: empty or undecodable payload, unknown kind.
    """
    if not data or not data.strip():
        raise InvalidAttachmentError("Attachment data is empty")

    payload = data.strip()
    if payload.startswith("data:"):
        header, _, payload = payload.partition(",")
        declared_mime = header[5:].split(";", 1)[0]
        mime_type = mime_type or declared_mime or None

    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidAttachmentError("Attachment data is not valid base64") from e

    mime = (mime_type or "application/octet-stream").lower()

    if kind and kind != AttachmentKind.AUTO.value:
        try:
            resolved_kind = AttachmentKind(kind)
        except ValueError as e:
            raise InvalidAttachmentError(f"Unknown attachment kind: {kind}") from e
    else:
        resolved_kind = infer_kind(mime, file_name)

    return PreparedAttachment(
        kind=resolved_kind,
        data_url=f"data:{mime};base64,{payload}",
        mime_type=mime,
        file_name=file_name,
        extension=document_extension(mime, file_name),
    )
