# backend/neuroscan/queries.py
"""
Data-access layer used by the dashboard.

Every read is scoped to the signed-in account: callers pass the verified
user id and rows owned by anyone else are never returned. Each operation is
attempted once; failures are raised to the caller as QueryError or
ValidationError without retrying.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .errors import PatientNotFound, QueryError, ScanNotFound, ValidationError
from .models import SCAN_STATUS_PENDING, Patient, Profile, Scan, UserSession

log = logging.getLogger("uvicorn.error")

PATIENT_FIELDS = (
    "patient_id",
    "medical_history",
    "allergies",
    "current_medications",
    "emergency_contact_name",
    "emergency_contact_phone",
)

SCAN_FIELDS = (
    "scan_type",
    "scan_date",
    "image_url",
    "original_filename",
    "file_size",
    "scan_notes",
    "referring_doctor",
    "technician_name",
)


# ---------- Patients ----------
def list_patients(db: Session, user_id: Optional[str]) -> List[Patient]:
    """Patients owned by user_id, newest first."""
    if not user_id:
        return []
    try:
        return (
            db.query(Patient)
              .filter(Patient.user_id == user_id)
              .order_by(Patient.created_at.desc())
              .all()
        )
    except SQLAlchemyError as e:
        log.exception("list_patients failed for user %s", user_id)
        raise QueryError(f"Failed to load patients: {e}") from e


def get_patient(db: Session, patient_id: str, user_id: str) -> Patient:
    try:
        patient = (
            db.query(Patient)
              .filter(Patient.id == patient_id, Patient.user_id == user_id)
              .one_or_none()
        )
    except SQLAlchemyError as e:
        log.exception("get_patient failed for %s", patient_id)
        raise QueryError(f"Failed to load patient: {e}") from e
    if patient is None:
        raise PatientNotFound()
    return patient


def create_patient(db: Session, user_id: str, fields: Mapping[str, Any]) -> Patient:
    """
    Insert one patient row owned by user_id.

    Only known patient columns are taken from fields; an ownership field in
    there is ignored. Optional columns missing from fields are stored as NULL.
    """
    label = fields.get("patient_id")
    if label is None or not str(label).strip():
        raise ValidationError("Patient ID is required")

    values: Dict[str, Any] = {k: fields.get(k) for k in PATIENT_FIELDS}
    values["patient_id"] = str(label).strip()

    patient = Patient(user_id=user_id, **values)
    db.add(patient)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        log.warning("create_patient rejected for user %s: %s", user_id, e.orig)
        if "unique" in str(e.orig).lower():
            raise ValidationError(
                f"A patient with ID '{values['patient_id']}' already exists"
            ) from e
        raise ValidationError(str(e.orig)) from e
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("create_patient failed for user %s", user_id)
        raise ValidationError(str(e.orig) if getattr(e, "orig", None) else str(e)) from e
    db.refresh(patient)
    return patient


# ---------- Scans ----------
def list_scans_for_patient(db: Session, patient_id: Optional[str], user_id: Optional[str]) -> List[Scan]:
    """Scans of one patient, newest first, with their predictions loaded."""
    if not patient_id or not user_id:
        return []
    try:
        return (
            db.query(Scan)
              .join(Patient, Patient.id == Scan.patient_id)
              .filter(Scan.patient_id == patient_id, Patient.user_id == user_id)
              .options(selectinload(Scan.predictions))
              .order_by(Scan.created_at.desc())
              .all()
        )
    except SQLAlchemyError as e:
        log.exception("list_scans_for_patient failed for %s", patient_id)
        raise QueryError(f"Failed to load scans: {e}") from e


def create_scan(db: Session, patient: Patient, fields: Mapping[str, Any], scan_id: Optional[str] = None) -> Scan:
    values = {k: fields[k] for k in SCAN_FIELDS if fields.get(k) is not None}
    if scan_id:
        values["id"] = scan_id
    scan = Scan(patient_id=patient.id, status=SCAN_STATUS_PENDING, **values)
    db.add(scan)
    try:
        db.commit()
        db.refresh(scan)
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("create_scan failed for patient %s", patient.id)
        raise ValidationError(str(e.orig) if getattr(e, "orig", None) else str(e)) from e
    return scan


def get_scan(db: Session, patient: Patient, scan_id: str) -> Scan:
    try:
        scan = (
            db.query(Scan)
              .filter(Scan.id == scan_id, Scan.patient_id == patient.id)
              .one_or_none()
        )
    except SQLAlchemyError as e:
        log.exception("get_scan failed for %s", scan_id)
        raise QueryError(f"Failed to load scan: {e}") from e
    if scan is None:
        raise ScanNotFound()
    return scan


# ---------- Profiles ----------
def get_profile(db: Session, user_id: str) -> Optional[Profile]:
    try:
        return db.get(Profile, user_id)
    except SQLAlchemyError as e:
        log.exception("get_profile failed for %s", user_id)
        raise QueryError(f"Failed to load profile: {e}") from e


def upsert_profile(db: Session, *, user_id: str, email=None, phone=None, full_name=None) -> Profile:
    """Create the profile on first login; afterwards only fill in new identifiers."""
    profile = db.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id, email=email, phone=phone, full_name=full_name)
        db.add(profile)
    else:
        if email and profile.email != email:
            profile.email = email
        if phone and profile.phone != phone:
            profile.phone = phone
        if full_name and not profile.full_name:
            profile.full_name = full_name
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("upsert_profile failed for %s", user_id)
        raise ValidationError(str(e)) from e
    db.refresh(profile)
    return profile


# ---------- Sessions ----------
def open_session(db: Session, *, user_id: str, login_method=None, ip_address=None, user_agent=None) -> UserSession:
    sess = UserSession(
        user_id=user_id,
        login_method=login_method,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(sess)
    try:
        db.commit()
        db.refresh(sess)
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("open_session failed for %s", user_id)
        raise ValidationError(f"Failed to record login session: {e}") from e
    return sess


def close_session(db: Session, *, session_id: str, user_id: str) -> Optional[UserSession]:
    try:
        sess = (
            db.query(UserSession)
              .filter(UserSession.id == session_id, UserSession.user_id == user_id)
              .one_or_none()
        )
    except SQLAlchemyError as e:
        log.exception("close_session lookup failed for %s", session_id)
        raise QueryError(f"Failed to load session: {e}") from e
    if sess is None:
        return None
    if sess.session_end is None:
        sess.session_end = datetime.now(timezone.utc)
        try:
            db.commit()
            db.refresh(sess)
        except SQLAlchemyError as e:
            db.rollback()
            log.exception("close_session failed for %s", session_id)
            raise ValidationError(f"Failed to close session: {e}") from e
    return sess
