"""AttachmentResolver: picker output and recordings to upload descriptors."""

import asyncio
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import unquote, urlparse

from ..logging_config import get_logger
from ..models import AttachmentType, AudioResult, UploadDescriptor, UploadPayload
from ..models.messages import _optional_int

logger = get_logger(__name__)

GENERIC_BINARY = "application/octet-stream"
VOICE_MESSAGE_NAME = "voice-message.m4a"

EXTENSION_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "heic": "image/heic",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "m4a": "audio/m4a",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "aac": "audio/aac",
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

# Image pickers report a media kind ("image"/"video") instead of a MIME type
PICKER_KIND_MIME_TYPES = {
    "image": "image/jpeg",
    "video": "video/mp4",
    "audio": "audio/m4a",
}

DEFAULT_EXTENSIONS = {
    AttachmentType.IMAGE: "jpg",
    AttachmentType.VIDEO: "mp4",
    AttachmentType.AUDIO: "m4a",
    AttachmentType.FILE: "file",
}


def classify(mime_type: str | None) -> AttachmentType:
    """Map a MIME type to the server-facing attachment classifier."""
    if not mime_type:
        return AttachmentType.FILE
    return UploadDescriptor(uri="", mime_type=mime_type, name="").attachment_type


def extension_of(name: str | None) -> str | None:
    """Lower-cased extension without the dot, or None."""
    if not name or "." not in name:
        return None
    ext = name.rsplit(".", 1)[1].strip().lower()
    return ext or None


def infer_mime_type(name: str | None) -> str | None:
    """MIME type from the extension table, or None when unknown."""
    ext = extension_of(name)
    return EXTENSION_MIME_TYPES.get(ext) if ext else None


def local_path(uri: str) -> Path:
    """Filesystem path for a ``file://`` URI or a plain path."""
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def _file_size(path: Path) -> int | None:
    try:
        return path.stat().st_size
    except OSError:
        return None


def _first(source: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = source.get(key)
        if value not in (None, ""):
            return value
    return None


class AttachmentResolver:
    """Normalizes picked files and recordings into UploadDescriptors.

    Picker-specific field names stay inside this class; everything
    downstream only sees UploadDescriptor and UploadPayload.
    """

    def resolve_picked(self, source: Mapping[str, Any]) -> UploadDescriptor:
        """Resolve a camera/library/document picker result."""
        uri = _first(source, "uri")
        if not uri:
            raise ValueError("Picked file has no uri")

        raw_type = _first(source, "mimeType", "mime_type", "type")
        explicit_mime = None
        kind_hint = None
        if isinstance(raw_type, str):
            if "/" in raw_type:
                explicit_mime = raw_type.lower()
            else:
                kind_hint = raw_type.lower()
        if explicit_mime == GENERIC_BINARY:
            explicit_mime = None

        name = _first(source, "name", "fileName", "filename")
        if not name:
            name = local_path(uri).name or None

        mime_type = (
            explicit_mime
            or infer_mime_type(name)
            or infer_mime_type(uri)
            or PICKER_KIND_MIME_TYPES.get(kind_hint or "")
            or GENERIC_BINARY
        )
        if mime_type == GENERIC_BINARY:
            logger.debug("Falling back to generic binary for %s", name or uri)

        if not name:
            name = f"attachment.{DEFAULT_EXTENSIONS[classify(mime_type)]}"

        size = _first(source, "size", "fileSize", "size_bytes")
        return UploadDescriptor(
            uri=uri,
            mime_type=mime_type,
            name=name,
            size_bytes=_optional_int(size),
        )

    async def resolve_audio(self, result: AudioResult) -> UploadDescriptor:
        """Resolve a finalized recording. The file is stat'ed off the event loop."""
        mime_type = result.mime_type or infer_mime_type(result.uri) or "audio/m4a"
        size = await asyncio.to_thread(_file_size, local_path(result.uri))
        return UploadDescriptor(
            uri=result.uri,
            mime_type=mime_type,
            name=VOICE_MESSAGE_NAME,
            size_bytes=size,
        )

    async def build_payload(self, descriptor: UploadDescriptor) -> UploadPayload:
        """Read the local file and build the multipart part.

        Raises OSError when the file cannot be read.
        """
        content = await asyncio.to_thread(local_path(descriptor.uri).read_bytes)
        return UploadPayload(
            name=descriptor.name,
            content=content,
            mime_type=descriptor.mime_type,
            attachment_type=descriptor.attachment_type,
        )
