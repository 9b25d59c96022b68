"""Attachment resolution module."""

from .resolver import AttachmentResolver, classify, infer_mime_type

__all__ = ["AttachmentResolver", "classify", "infer_mime_type"]
