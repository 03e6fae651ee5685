import os

import pytest

from neuroscan import scans
from neuroscan.errors import ValidationError
from neuroscan.scans import ScanUpload, UploadRejected, is_scan_content_type, scan_file_path

from factories import add_patient


def stored_files(root):
    return [os.path.join(d, f) for d, _, files in os.walk(root) for f in files]


def test_upload_stores_file_and_fires_signal(db, tmp_path):
    patient = add_patient(db, "user-1", "A1", id="p1")
    fired = []

    scan = ScanUpload(db, patient, on_scan_uploaded=lambda: fired.append(True), upload_dir=str(tmp_path)).upload(
        filename="Brain.PNG", content_type="image/png", data=b"pixels",
    )

    assert fired == [True]
    assert scan.status == "pending"
    assert stored_files(tmp_path) == [scan_file_path(str(tmp_path), "p1", scan.id, "Brain.PNG")]
    assert stored_files(tmp_path)[0].endswith(".png")


def test_rejected_upload_does_not_fire_signal(db, tmp_path):
    patient = add_patient(db, "user-1", "A1")
    fired = []

    with pytest.raises(UploadRejected) as exc:
        ScanUpload(db, patient, on_scan_uploaded=lambda: fired.append(True), upload_dir=str(tmp_path)).upload(
            filename="notes.txt", content_type="text/plain", data=b"hello",
        )

    assert exc.value.status_code == 400
    assert fired == []


@pytest.mark.parametrize("error", [RuntimeError("refresh failed"), ValidationError("insert failed")])
def test_failed_insert_removes_stored_file(db, tmp_path, monkeypatch, error):
    patient = add_patient(db, "user-1", "A1")
    fired = []

    def fail(*args, **kwargs):
        raise error

    monkeypatch.setattr(scans.queries, "create_scan", fail)

    with pytest.raises(type(error)):
        ScanUpload(db, patient, on_scan_uploaded=lambda: fired.append(True), upload_dir=str(tmp_path)).upload(
            filename="brain.png", content_type="image/png", data=b"pixels",
        )

    assert stored_files(tmp_path) == []
    assert fired == []


def test_scan_content_types():
    assert is_scan_content_type("image/jpeg")
    assert is_scan_content_type("application/dicom")
    assert not is_scan_content_type("text/plain")
    assert not is_scan_content_type(None)
