from inbox.messaging.services.attachment_service import describe_attachment, infer_kind


class TestInferKind:
    def test_should_map_media_types(self):
        assert infer_kind("image/jpeg") == "image"
        assert infer_kind("video/mp4") == "video"
        assert infer_kind("audio/ogg") == "audio"

    def test_should_default_to_document(self):
        assert infer_kind("application/pdf") == "document"
        assert infer_kind(None) == "document"


class TestDescribeAttachment:
    def test_should_include_icon_name_and_size(self):
        assert describe_attachment("clip.mp4", 3 * 1024 * 1024, "video") == (
            "📎 🎥 clip.mp4 (3.00 MB)"
        )

    def test_should_use_document_icon_for_other_kinds(self):
        assert describe_attachment("report.pdf", 0, "document") == "📎 📄 report.pdf (0.00 MB)"
