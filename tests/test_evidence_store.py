"""
Evidence store tests — allow-list, size ceiling and local file handling.
"""

import io

import pytest
from werkzeug.datastructures import FileStorage

from reporttracker.core.exceptions import CollaboratorError, ValidationError
from reporttracker.services.evidence_store import EvidenceUpload, LocalEvidenceStore


@pytest.fixture()
def store(tmp_path):
    return LocalEvidenceStore(str(tmp_path / "slips"), max_bytes=1024)


class TestValidation:
    @pytest.mark.parametrize("content_type", ["application/pdf", "image/jpeg", "image/png", "image/webp"])
    def test_allowed(self, store, content_type):
        store.validate(EvidenceUpload(data=b"x", content_type=content_type))

    @pytest.mark.parametrize("content_type", ["text/plain", "image/gif", "application/zip", ""])
    def test_rejected_types(self, store, content_type):
        with pytest.raises(ValidationError) as exc:
            store.validate(EvidenceUpload(data=b"x", content_type=content_type))
        assert "slip" in exc.value.details

    def test_size_ceiling_inclusive(self, store):
        store.validate(EvidenceUpload(data=b"x" * 1024, content_type="image/png"))
        with pytest.raises(ValidationError, match="too large"):
            store.validate(EvidenceUpload(data=b"x" * 1025, content_type="image/png"))

    def test_empty_file(self, store):
        with pytest.raises(ValidationError):
            store.validate(EvidenceUpload(data=b"", content_type="image/png"))


class TestLocalStore:
    def test_store_and_delete(self, store):
        url = store.store(EvidenceUpload(data=b"%PDF", content_type="application/pdf",
                                         filename="../../etc/passwd.pdf"))
        assert url.startswith("/uploads/")
        name = url.rsplit("/", 1)[1]
        assert "/" not in name and name.endswith(".pdf")
        path = store.path_for(name)
        assert path.read_bytes() == b"%PDF"

        store.delete(url)
        assert not path.exists()

    def test_unique_names(self, store):
        upload = EvidenceUpload(data=b"img", content_type="image/png", filename="meter.png")
        assert store.store(upload) != store.store(upload)

    def test_delete_ignores_foreign_urls(self, store):
        store.delete("https://elsewhere.example.com/slip.png")
        store.delete("")

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "file-not-dir"
        blocker.write_text("occupied")
        store = LocalEvidenceStore(str(blocker))
        with pytest.raises(CollaboratorError):
            store.store(EvidenceUpload(data=b"img", content_type="image/png"))


class TestFromFileStorage:
    def test_reads_werkzeug_upload(self):
        fs = FileStorage(stream=io.BytesIO(b"img"), filename="a.PNG", content_type="IMAGE/PNG")
        upload = EvidenceUpload.from_file_storage(fs)
        assert upload.data == b"img"
        assert upload.content_type == "image/png"
        assert upload.filename == "a.PNG"

    def test_empty_field(self):
        assert EvidenceUpload.from_file_storage(None) is None
        assert EvidenceUpload.from_file_storage(FileStorage(stream=io.BytesIO(b""), filename="")) is None
