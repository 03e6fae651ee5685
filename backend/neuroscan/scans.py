# backend/neuroscan/scans.py
import logging
import os
import uuid
from datetime import datetime
from typing import Callable, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from . import queries
from .auth import AuthUser, get_current_user
from .config import MAX_UPLOAD_BYTES, UPLOAD_DIR
from .dashboard import build_dashboard
from .db import get_db
from .errors import DataAccessError, PatientNotFound, QueryError, ScanNotFound
from .models import Patient, Scan
from .schemas import ScanOut, ScanUploadResponse

router = APIRouter(tags=["scans"])
log = logging.getLogger("uvicorn.error")

ALLOWED_NON_IMAGE_TYPES = ("application/dicom",)


class UploadRejected(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


def is_scan_content_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return content_type.startswith("image/") or content_type in ALLOWED_NON_IMAGE_TYPES


def scan_file_path(upload_dir: str, patient_id: str, scan_id: str, filename: Optional[str]) -> str:
    """On-disk location of a scan image: <upload_dir>/<patient id>/<scan id><ext>."""
    ext = os.path.splitext(filename or "")[1].lower()
    return os.path.join(upload_dir, patient_id, f"{scan_id}{ext}")


def scan_image_url(patient_id: str, scan_id: str) -> str:
    return f"/patients/{patient_id}/scans/{scan_id}/image"


class ScanUpload:
    """
    Stores one scan file for a patient and records the Scan row.

    on_scan_uploaded fires once per successful upload and is the only signal
    this component sends outward.
    """

    def __init__(
        self,
        db: Session,
        patient: Patient,
        on_scan_uploaded: Optional[Callable[[], None]] = None,
        upload_dir: Optional[str] = None,
    ):
        self.db = db
        self.patient = patient
        self.on_scan_uploaded = on_scan_uploaded
        self.upload_dir = upload_dir or UPLOAD_DIR

    def _store(self, path: str, data: bytes) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    def upload(
        self,
        *,
        filename: str,
        content_type: Optional[str],
        data: bytes,
        scan_type: Optional[str] = None,
        scan_date: Optional[datetime] = None,
        scan_notes: Optional[str] = None,
        referring_doctor: Optional[str] = None,
        technician_name: Optional[str] = None,
    ) -> Scan:
        if not is_scan_content_type(content_type):
            raise UploadRejected(400, "File must be an image")
        if not data:
            raise UploadRejected(400, "Uploaded file is empty")
        if len(data) > MAX_UPLOAD_BYTES:
            raise UploadRejected(413, f"File exceeds {MAX_UPLOAD_BYTES} bytes")

        scan_id = str(uuid.uuid4())
        path = scan_file_path(self.upload_dir, self.patient.id, scan_id, filename)
        self._store(path, data)
        try:
            scan = queries.create_scan(self.db, self.patient, {
                "scan_type": scan_type,
                "scan_date": scan_date,
                "image_url": scan_image_url(self.patient.id, scan_id),
                "original_filename": filename,
                "file_size": len(data),
                "scan_notes": scan_notes,
                "referring_doctor": referring_doctor,
                "technician_name": technician_name,
            }, scan_id=scan_id)
        except Exception:
            # no row points at the file, drop it before reporting
            os.remove(path)
            raise

        log.info("scan uploaded: patient=%s scan=%s size=%d", self.patient.id, scan.id, len(data))
        if self.on_scan_uploaded is not None:
            self.on_scan_uploaded()
        return scan


# ---------- Endpoints ----------
@router.post("/patients/{patient_id}/scans", response_model=ScanUploadResponse, status_code=201)
async def upload_scan(
    patient_id: str,
    file: UploadFile = File(...),
    scan_type: Optional[str] = Form(None),
    scan_date: Optional[datetime] = Form(None),
    scan_notes: Optional[str] = Form(None),
    referring_doctor: Optional[str] = Form(None),
    technician_name: Optional[str] = Form(None),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        patient = queries.get_patient(db, patient_id, user.uid)
    except PatientNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    dash = build_dashboard(db, user, patient.id)
    uploader = ScanUpload(db, patient, on_scan_uploaded=dash.handle_scan_uploaded, upload_dir=UPLOAD_DIR)

    # one byte past the limit is enough to know it is too big
    data = await file.read(MAX_UPLOAD_BYTES + 1)
    try:
        scan = uploader.upload(
            filename=file.filename,
            content_type=file.content_type,
            data=data,
            scan_type=scan_type or None,
            scan_date=scan_date,
            scan_notes=scan_notes or None,
            referring_doctor=referring_doctor or None,
            technician_name=technician_name or None,
        )
    except UploadRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except DataAccessError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ScanUploadResponse(scan=ScanOut.model_validate(scan), dashboard=dash.view())


@router.get("/patients/{patient_id}/scans/{scan_id}/image")
def scan_image(
    patient_id: str,
    scan_id: str,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        patient = queries.get_patient(db, patient_id, user.uid)
        scan = queries.get_scan(db, patient, scan_id)
    except (PatientNotFound, ScanNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except QueryError as e:
        raise HTTPException(status_code=502, detail=str(e))

    path = scan_file_path(UPLOAD_DIR, patient.id, scan.id, scan.original_filename)
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="Scan image not found")
    return FileResponse(path=path, filename=scan.original_filename or os.path.basename(path))
