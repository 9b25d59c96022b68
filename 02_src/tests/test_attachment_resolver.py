"""Tests for AttachmentResolver."""

import pytest

from chatsync.attachments import AttachmentResolver, classify, infer_mime_type
from chatsync.models import AttachmentType, AudioResult, UploadDescriptor


@pytest.fixture
def resolver():
    return AttachmentResolver()


class TestResolvePicked:
    """Tests for picker results."""

    def test_photo_from_extension(self, resolver):
        """Test a photo.jpg without MIME type is an image/jpeg."""
        d = resolver.resolve_picked({"uri": "file:///photos/photo.jpg"})

        assert d.mime_type == "image/jpeg"
        assert d.name == "photo.jpg"
        assert d.attachment_type is AttachmentType.IMAGE

    def test_explicit_mime_wins(self, resolver):
        """Test the picker's MIME type is preferred over the extension."""
        d = resolver.resolve_picked(
            {"uri": "file:///x/clip.bin", "mimeType": "video/mp4", "fileName": "clip.bin"}
        )

        assert d.mime_type == "video/mp4"
        assert d.name == "clip.bin"
        assert d.attachment_type is AttachmentType.VIDEO

    def test_generic_binary_not_trusted(self, resolver):
        """Test octet-stream defers to the file name."""
        d = resolver.resolve_picked(
            {"uri": "content://doc/42", "mimeType": "application/octet-stream", "name": "report.pdf"}
        )

        assert d.mime_type == "application/pdf"
        assert d.attachment_type is AttachmentType.FILE

    def test_kind_hint(self, resolver):
        """Test a media kind hint is used when nothing else is known."""
        d = resolver.resolve_picked({"uri": "ph://asset/ABC", "type": "video"})

        assert d.mime_type == "video/mp4"
        assert d.attachment_type is AttachmentType.VIDEO

    def test_unknown_falls_back(self, resolver):
        """Test unknown files are uploaded as generic binaries."""
        d = resolver.resolve_picked({"uri": "file:///tmp/data.xyz", "size": "12"})

        assert d.mime_type == "application/octet-stream"
        assert d.attachment_type is AttachmentType.FILE
        assert d.size_bytes == 12

    def test_default_name(self, resolver):
        """Test a name is synthesized when the URI has none."""
        d = resolver.resolve_picked({"uri": "file:///", "mimeType": "image/jpeg"})

        assert d.name == "attachment.jpg"
        assert d.mime_type == "image/jpeg"

    def test_bad_picker_size_ignored(self, resolver):
        """Test a non-numeric fileSize does not break the send."""
        d = resolver.resolve_picked({"uri": "/tmp/photo.jpg", "fileSize": "unknown"})

        assert d.size_bytes is None

    def test_missing_uri(self, resolver):
        """Test a picker result without uri is rejected."""
        with pytest.raises(ValueError):
            resolver.resolve_picked({"name": "photo.jpg"})


class TestResolveAudio:
    """Tests for recordings."""

    @pytest.mark.asyncio
    async def test_voice_message(self, resolver, tmp_path):
        """Test recordings get the voice-message name and file size."""
        clip = tmp_path / "rec.m4a"
        clip.write_bytes(b"12345")

        d = await resolver.resolve_audio(AudioResult(uri=clip.as_uri(), duration_seconds=2))

        assert d.name == "voice-message.m4a"
        assert d.mime_type == "audio/m4a"
        assert d.attachment_type is AttachmentType.AUDIO
        assert d.size_bytes == 5

    @pytest.mark.asyncio
    async def test_missing_file_has_no_size(self, resolver, tmp_path):
        clip = tmp_path / "gone.m4a"

        d = await resolver.resolve_audio(AudioResult(uri=clip.as_uri(), duration_seconds=2))

        assert d.size_bytes is None


class TestBuildPayload:
    """Tests for reading files into upload parts."""

    @pytest.mark.asyncio
    async def test_reads_file_uri(self, resolver, tmp_path):
        """Test file:// URIs are read from disk."""
        doc = tmp_path / "notes.pdf"
        doc.write_bytes(b"%PDF")
        d = UploadDescriptor(uri=doc.as_uri(), mime_type="application/pdf", name="notes.pdf")

        payload = await resolver.build_payload(d)

        assert payload.content == b"%PDF"
        assert payload.as_file_tuple() == ("notes.pdf", b"%PDF", "application/pdf")
        assert payload.attachment_type is AttachmentType.FILE

    @pytest.mark.asyncio
    async def test_missing_file(self, resolver, tmp_path):
        """Test an unreadable file surfaces as OSError."""
        d = UploadDescriptor(uri=str(tmp_path / "gone.jpg"), mime_type="image/jpeg", name="gone.jpg")

        with pytest.raises(OSError):
            await resolver.build_payload(d)


class TestHelpers:
    """Tests for module helpers."""

    def test_infer_mime_type(self):
        assert infer_mime_type("A.JPEG") == "image/jpeg"
        assert infer_mime_type("noext") is None
        assert infer_mime_type(None) is None

    def test_classify(self):
        assert classify("audio/mpeg") is AttachmentType.AUDIO
        assert classify(None) is AttachmentType.FILE
