"""Tests for upload orchestration."""

from unittest.mock import patch

import pytest
from shuk.common import ForeignObjectError, LocalIoError, RemoteServiceError
from shuk.constants import MULTIPART_THRESHOLD, PART_SIZE
from shuk.sync import SyncDecision
from shuk.tags import ObjectTagSet
from shuk.transfer import TransferOrchestrator, plan_parts, use_multipart

TAGS = ObjectTagSet(start_hash="s", end_hash="e")


class TestPlanParts:
    """Tests for plan_parts function."""
    
    @pytest.mark.parametrize("file_size,part_size", [
        (1, 5),
        (5, 5),
        (6, 5),
        (23, 5),
        (PART_SIZE * 3 + 1, PART_SIZE),
    ])
    def test_parts_cover_file(self, file_size, part_size):
        """Test numbering, count and coverage of the plan."""
        parts = plan_parts(file_size, part_size)
        
        assert len(parts) == -(-file_size // part_size)
        assert [p.part_number for p in parts] == list(range(1, len(parts) + 1))
        assert sum(p.length for p in parts) == file_size
        assert all(p.length == part_size for p in parts[:-1])
        offset = 0
        for part in parts:
            assert part.offset == offset
            offset += part.length
    
    def test_empty_file(self):
        assert plan_parts(0, 5) == []
    
    def test_invalid_part_size(self):
        with pytest.raises(ValueError):
            plan_parts(10, 0)


class TestUseMultipart:
    """Test the strategy boundary."""
    
    def test_at_threshold_is_single_shot(self):
        assert MULTIPART_THRESHOLD == 4294967296
        assert use_multipart(4294967296) is False
    
    def test_above_threshold_is_multipart(self):
        assert use_multipart(4294967297) is True
    
    def test_small_file(self):
        assert use_multipart(0) is False


class TestPutFileStrategy:
    """Test put_file picks the strategy from the real file size."""
    
    @pytest.mark.parametrize("size,multipart", [
        (MULTIPART_THRESHOLD, False),
        (MULTIPART_THRESHOLD + 1, True),
    ])
    def test_boundary_with_sparse_file(self, s3, tmp_path, size, multipart):
        file_path = tmp_path / "big.bin"
        with open(file_path, "wb") as f:
            f.truncate(size)
        orchestrator = TransferOrchestrator(s3, "test-bucket", 60)
        
        with patch.object(orchestrator, "_single_shot_upload") as single, \
                patch.object(orchestrator, "_multipart_upload") as multi:
            orchestrator.put_file(file_path, "big.bin", TAGS)
        
        assert multi.called is multipart
        assert single.called is not multipart
    
    def test_missing_file(self, s3, tmp_path):
        orchestrator = TransferOrchestrator(s3, "test-bucket", 60)
        with pytest.raises(LocalIoError):
            orchestrator.put_file(tmp_path / "gone.bin", "gone.bin", TAGS)
        assert s3.calls == []


class TestSingleShotUpload:
    """Test uploads at or below the threshold."""
    
    def test_uploads_with_tags_and_progress(self, s3, tmp_path):
        data = b"x" * 20000
        file_path = tmp_path / "a.bin"
        file_path.write_bytes(data)
        updates = []
        orchestrator = TransferOrchestrator(s3, "test-bucket", 60, progress_callback=updates.append)
        
        orchestrator.put_file(file_path, "shared/a.bin", TAGS)
        
        assert s3.operations() == ["UploadFile"]
        call = s3.calls_for("UploadFile")[0]
        assert call["Tagging"] == "managed_by=shuk&start_hash=s&end_hash=e"
        assert call["Config"].multipart_threshold == MULTIPART_THRESHOLD + 1
        assert s3.objects["shared/a.bin"]["body"] == data
        assert s3.objects["shared/a.bin"]["tags"]["managed_by"] == "shuk"
        assert updates[-1].bytes_uploaded == len(data)
        assert updates[-1].total_bytes == len(data)
    
    def test_service_failure(self, s3, tmp_path):
        file_path = tmp_path / "a.bin"
        file_path.write_bytes(b"abc")
        s3.fail_on("UploadFile")
        
        with pytest.raises(RemoteServiceError):
            TransferOrchestrator(s3, "test-bucket", 60).put_file(file_path, "a.bin", TAGS)


class TestMultipartUpload:
    """Test multi-part uploads with a small threshold and part size."""
    
    def make(self, s3, **kwargs):
        return TransferOrchestrator(
            s3, "test-bucket", 60, part_size=5, multipart_threshold=10, **kwargs
        )
    
    def test_parts_in_order(self, s3, tmp_path):
        data = b"abcdefghijklmnopqrstuvw"  # 23 bytes -> 5 parts
        file_path = tmp_path / "big.bin"
        file_path.write_bytes(data)
        updates = []
        
        self.make(s3, progress_callback=updates.append).put_file(file_path, "big.bin", TAGS)
        
        ops = s3.operations()
        assert ops[0] == "CreateMultipartUpload"
        assert ops[-1] == "CompleteMultipartUpload"
        assert s3.calls_for("CreateMultipartUpload")[0]["Tagging"] == "managed_by=shuk&start_hash=s&end_hash=e"
        parts = s3.calls_for("UploadPart")
        assert [p["PartNumber"] for p in parts] == [1, 2, 3, 4, 5]
        assert [p["Size"] for p in parts] == [5, 5, 5, 5, 3]
        assert s3.calls_for("CompleteMultipartUpload")[0]["PartNumbers"] == [1, 2, 3, 4, 5]
        assert s3.objects["big.bin"]["body"] == data
        assert s3.objects["big.bin"]["tags"]["start_hash"] == "s"
        assert [u.bytes_uploaded for u in updates] == [5, 10, 15, 20, 23]
    
    def test_part_failure_aborts(self, s3, tmp_path):
        file_path = tmp_path / "big.bin"
        file_path.write_bytes(b"z" * 23)
        s3.fail_on("UploadPart", code="InternalError", status=500, part_number=3)
        
        with pytest.raises(RemoteServiceError):
            self.make(s3).put_file(file_path, "big.bin", TAGS)
        
        ops = s3.operations()
        assert "CompleteMultipartUpload" not in ops
        assert ops[-1] == "AbortMultipartUpload"
        assert s3.calls_for("AbortMultipartUpload")[0]["UploadId"] == "upload-1"
        assert "big.bin" not in s3.objects
        assert s3.uploads == {}
    
    def test_complete_failure_aborts(self, s3, tmp_path):
        file_path = tmp_path / "big.bin"
        file_path.write_bytes(b"z" * 11)
        s3.fail_on("CompleteMultipartUpload")
        
        with pytest.raises(RemoteServiceError):
            self.make(s3).put_file(file_path, "big.bin", TAGS)
        
        assert s3.operations()[-1] == "AbortMultipartUpload"
    
    def test_create_failure(self, s3, tmp_path):
        file_path = tmp_path / "big.bin"
        file_path.write_bytes(b"z" * 11)
        s3.fail_on("CreateMultipartUpload")
        
        with pytest.raises(RemoteServiceError):
            self.make(s3).put_file(file_path, "big.bin", TAGS)
        
        assert s3.operations() == ["CreateMultipartUpload"]
    
    def test_abort_failure_keeps_original_error(self, s3, tmp_path):
        file_path = tmp_path / "big.bin"
        file_path.write_bytes(b"z" * 11)
        s3.fail_on("UploadPart", part_number=1)
        s3.fail_on("AbortMultipartUpload")
        
        with pytest.raises(RemoteServiceError) as exc_info:
            self.make(s3).put_file(file_path, "big.bin", TAGS)
        
        assert exc_info.value.context["operation"] == "UploadPart"

    def test_progress_callback_failure_aborts(self, s3, tmp_path):
        """Test that an error outside the storage layer still closes the session."""
        file_path = tmp_path / "big.bin"
        file_path.write_bytes(b"z" * 23)

        def broken_callback(progress):
            raise RuntimeError("display closed")

        with pytest.raises(RuntimeError):
            self.make(s3, progress_callback=broken_callback).put_file(file_path, "big.bin", TAGS)

        ops = s3.operations()
        assert ops == ["CreateMultipartUpload", "UploadPart", "AbortMultipartUpload"]
        assert s3.uploads == {}

    def test_interrupt_aborts(self, s3, tmp_path):
        file_path = tmp_path / "big.bin"
        file_path.write_bytes(b"z" * 23)

        def interrupt(progress):
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            self.make(s3, progress_callback=interrupt).put_file(file_path, "big.bin", TAGS)

        assert s3.operations()[-1] == "AbortMultipartUpload"

    def test_short_read_aborts(self, s3, tmp_path):
        """Test that a file shrinking under the upload is a local error."""
        file_path = tmp_path / "big.bin"
        file_path.write_bytes(b"z" * 23)

        with patch("shuk.transfer.plan_parts", side_effect=lambda size, part_size: plan_parts(size + 4, part_size)):
            with pytest.raises(LocalIoError) as exc_info:
                self.make(s3).put_file(file_path, "big.bin", TAGS)

        assert "Short read" in str(exc_info.value)
        ops = s3.operations()
        assert ops[-1] == "AbortMultipartUpload"
        assert "CompleteMultipartUpload" not in ops
        assert [p["PartNumber"] for p in s3.calls_for("UploadPart")] == [1, 2, 3, 4]

    def test_read_error_aborts(self, s3, tmp_path):
        file_path = tmp_path / "big.bin"
        file_path.write_bytes(b"z" * 23)
        orchestrator = self.make(s3)
        real_open = open

        class FailingReader:
            def __init__(self, f):
                self.f = f

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                self.f.close()

            def read(self, size):
                raise OSError("I/O error")

        with patch("shuk.transfer.open", create=True, side_effect=lambda *a, **kw: FailingReader(real_open(*a, **kw))):
            with pytest.raises(LocalIoError):
                orchestrator.put_file(file_path, "big.bin", TAGS)

        assert s3.operations() == ["CreateMultipartUpload", "AbortMultipartUpload"]


class TestUploadDecision:
    """Test TransferOrchestrator.upload applies the sync decision."""
    
    def test_skip_only_presigns(self, s3, tmp_path):
        file_path = tmp_path / "a.bin"
        file_path.write_bytes(b"abc")
        
        url = TransferOrchestrator(s3, "test-bucket", 600).upload(file_path, "a.bin", TAGS, SyncDecision.SKIP)
        
        assert s3.operations() == ["Presign"]
        assert "a.bin" in url
        assert s3.calls_for("Presign")[0]["ExpiresIn"] == 600
    
    def test_upload_then_presign(self, s3, tmp_path):
        file_path = tmp_path / "a.bin"
        file_path.write_bytes(b"abc")
        
        TransferOrchestrator(s3, "test-bucket", 600).upload(file_path, "a.bin", TAGS, SyncDecision.UPLOAD)
        
        assert s3.operations() == ["UploadFile", "Presign"]


class TestDelete:
    """Test deleting managed objects."""
    
    def test_deletes_managed_object(self, s3):
        s3.add_object("a.bin", b"abc", {"managed_by": "shuk"})
        
        assert TransferOrchestrator(s3, "test-bucket", 60).delete("a.bin") is True
        
        assert "a.bin" not in s3.objects
    
    def test_refuses_foreign_object(self, s3):
        s3.add_object("theirs.bin", b"abc", {"owner": "someone"})
        
        with pytest.raises(ForeignObjectError):
            TransferOrchestrator(s3, "test-bucket", 60).delete("theirs.bin")
        
        assert "theirs.bin" in s3.objects
        assert "DeleteObject" not in s3.operations()
    
    def test_missing_object(self, s3):
        assert TransferOrchestrator(s3, "test-bucket", 60).delete("gone.bin") is False
    
    def test_delete_failure(self, s3):
        s3.add_object("a.bin", b"abc", {"managed_by": "shuk"})
        s3.fail_on("DeleteObject")
        with pytest.raises(RemoteServiceError):
            TransferOrchestrator(s3, "test-bucket", 60).delete("a.bin")
