"""
Tests for PDF writing, the document store and the renderer
"""
import re
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from labdocs.certificate_layout import layout_certificate
from labdocs.exceptions import DocumentGenerationError, StorageError
from labdocs.pdf import PdfWriter
from labdocs.renderer import generate_certificate_pdf, generate_service_pdf
from labdocs.service_layout import layout_service
from labdocs.storage import DocumentStore

GENERATED_AT = datetime(2024, 5, 2, 10, 30, 0)


class TestPdfWriter:
    """Tests for the reportlab writer"""

    def test_writes_pdf(self, certificate_record):
        description, _ = layout_certificate(certificate_record, GENERATED_AT)

        data = PdfWriter(invariant=True).to_bytes(description)

        assert data.startswith(b"%PDF-")
        assert data.rstrip().endswith(b"%%EOF")

    def test_invariant_output_is_identical(self, certificate_record):
        description, _ = layout_certificate(certificate_record, GENERATED_AT)
        writer = PdfWriter(invariant=True)

        assert writer.to_bytes(description) == writer.to_bytes(description)

    def test_page_count(self, service_record):
        remarks = [
            {"service_spares": "Filter", "part_no": "F1", "rate": "10", "quantity": 1, "po_no": "PO"}
        ] * 40
        description, _ = layout_service(service_record.model_copy(update={"engineer_remarks": remarks}), GENERATED_AT)

        data = PdfWriter(invariant=True).to_bytes(description)

        assert len(description.pages) == 3
        assert len(re.findall(rb"/Type /Page(?!s)", data)) == 3

    def test_unreadable_image_is_skipped(self, certificate_record, tmp_path):
        broken = tmp_path / "rps.png"
        broken.write_bytes(b"not an image")
        description, _ = layout_certificate(certificate_record, GENERATED_AT, logo_path=broken)

        data = PdfWriter(invariant=True).to_bytes(description)

        assert data.startswith(b"%PDF-")


class TestDocumentStore:
    """Tests for the document file store"""

    def test_save_and_load(self, tmp_path):
        store = DocumentStore(tmp_path / "docs")

        path = store.save("CERT-1-abc", b"%PDF-1.4 data")

        assert path == tmp_path / "docs" / "CERT-1-abc.pdf"
        assert store.exists("CERT-1-abc")
        assert store.load("CERT-1-abc") == b"%PDF-1.4 data"

    def test_directory_created_lazily(self, tmp_path):
        store = DocumentStore(tmp_path / "docs")

        assert not (tmp_path / "docs").exists()
        assert not store.exists("CERT-1-abc")

    def test_empty_file_does_not_count(self, tmp_path):
        store = DocumentStore(tmp_path)
        (tmp_path / "CERT-1-abc.pdf").write_bytes(b"")

        assert not store.exists("CERT-1-abc")

    def test_save_replaces_previous_version(self, tmp_path):
        store = DocumentStore(tmp_path)
        store.save("CERT-1-abc", b"old")
        store.save("CERT-1-abc", b"new")

        assert store.load("CERT-1-abc") == b"new"
        assert [p.name for p in tmp_path.iterdir()] == ["CERT-1-abc.pdf"]

    def test_delete(self, tmp_path):
        store = DocumentStore(tmp_path)
        store.save("CERT-1-abc", b"data")

        assert store.delete("CERT-1-abc") is True
        assert store.delete("CERT-1-abc") is False

    @pytest.mark.parametrize("document_id", ["", "../etc/passwd", "a/b", "RPS/CERT/24-25/001"])
    def test_rejects_unsafe_ids(self, tmp_path, document_id):
        with pytest.raises(StorageError):
            DocumentStore(tmp_path).path_for(document_id)

    def test_unwritable_directory_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")

        with pytest.raises(StorageError):
            DocumentStore(blocker / "docs").save("CERT-1-abc", b"data")

    def test_storage_stats(self, tmp_path):
        store = DocumentStore(tmp_path)
        store.save("CERT-1-abc", b"1234")
        store.save("CERT-2-abc", b"56")

        stats = store.get_storage_stats()

        assert stats["documents"] == 2
        assert stats["total_size"] == 6


class TestDocumentRenderer:
    """Tests for rendering records into stored PDFs"""

    def test_render_certificate(self, renderer, certificate_record, assets):
        result = renderer.render_certificate(certificate_record)

        assert result.path.name == "CERT-1714640000000-abc123xyz.pdf"
        assert result.path.read_bytes().startswith(b"%PDF-")
        assert result.pages == 1
        assert result.report.ok

    def test_render_service(self, renderer, service_record):
        result = renderer.render(service_record)

        assert result.path.parent == renderer.service_store.base_path
        assert result.path.read_bytes().startswith(b"%PDF-")

    def test_render_is_byte_identical(self, renderer, certificate_record):
        first = renderer.render_certificate(certificate_record).path.read_bytes()
        second = renderer.render_certificate(certificate_record).path.read_bytes()

        assert first == second

    def test_writer_failure_is_typed(self, renderer, certificate_record):
        renderer.writer = MagicMock()
        renderer.writer.to_bytes.side_effect = RuntimeError("boom")

        with pytest.raises(DocumentGenerationError):
            renderer.render_certificate(certificate_record)

    def test_sink_failure_is_typed(self, renderer, certificate_record, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        renderer.certificate_store = DocumentStore(blocker / "certificates")

        with pytest.raises(StorageError):
            renderer.render_certificate(certificate_record)

    def test_partial_record_still_renders(self, renderer, certificate_record):
        record = certificate_record.model_copy(update={"observations": None, "status": None})

        result = renderer.render_certificate(record)

        assert result.path.stat().st_size > 0

    def test_unsupported_record(self, renderer):
        with pytest.raises(DocumentGenerationError):
            renderer.render({"certificate_id": "x"})

    def test_module_level_helpers(self, renderer, certificate_record, service_record):
        assert generate_certificate_pdf(certificate_record, renderer).exists()
        assert generate_service_pdf(service_record, renderer).exists()
