"""Attachment upload data models."""

from dataclasses import dataclass

from .messages import AttachmentType


@dataclass
class AudioResult:
    """A finalized voice recording."""

    uri: str
    duration_seconds: int
    mime_type: str = "audio/m4a"


@dataclass
class UploadDescriptor:
    """A resolved local file ready to be uploaded once."""

    uri: str
    mime_type: str
    name: str
    size_bytes: int | None = None

    @property
    def attachment_type(self) -> AttachmentType:
        """Classifier derived from the MIME prefix."""
        major = self.mime_type.split("/", 1)[0].lower()
        if major == "image":
            return AttachmentType.IMAGE
        if major == "video":
            return AttachmentType.VIDEO
        if major == "audio":
            return AttachmentType.AUDIO
        return AttachmentType.FILE


@dataclass
class UploadPayload:
    """Multipart part built from an UploadDescriptor."""

    name: str
    content: bytes
    mime_type: str
    attachment_type: AttachmentType

    def as_file_tuple(self) -> tuple[str, bytes, str]:
        """Shape expected by httpx ``files=``."""
        return (self.name, self.content, self.mime_type)
