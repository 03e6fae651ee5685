# backend/neuroscan/models.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Integer,
    BigInteger,
    Float,
    Boolean,
    DateTime,
    Date,
    ForeignKey,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from .db import Base


# Only status value observed in the scan lifecycle; others are backend-defined.
SCAN_STATUS_PENDING = "pending"


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# -------------------------
# Profiles (one per auth account)
# -------------------------
class Profile(Base):
    __tablename__ = "profiles"

    # Firebase uid
    id = Column(String(128), primary_key=True)

    full_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(32), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    role = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)


# -------------------------
# Login sessions
# -------------------------
class UserSession(Base):
    __tablename__ = "user_sessions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(128), nullable=False, index=True)

    login_method = Column(String(64), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)

    session_start = Column(DateTime(timezone=True), default=_now, nullable=False)
    session_end = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)


# -------------------------
# Patients
# -------------------------
class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=_uuid)

    # Label chosen by the clinician, e.g. hospital MRN
    patient_id = Column(String(128), nullable=False)

    medical_history = Column(Text, nullable=True)
    allergies = Column(Text, nullable=True)
    current_medications = Column(Text, nullable=True)
    emergency_contact_name = Column(String(255), nullable=True)
    emergency_contact_phone = Column(String(64), nullable=True)

    # owning account (Firebase uid)
    user_id = Column(String(128), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=_now, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    scans = relationship(
        "Scan",
        back_populates="patient",
        cascade="all, delete-orphan",
        order_by="Scan.created_at.desc()",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "patient_id", name="uq_patients_user_patient_id"),
    )


# -------------------------
# Scans
# -------------------------
class Scan(Base):
    __tablename__ = "scans"

    id = Column(String(36), primary_key=True, default=_uuid)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)

    scan_type = Column(String(64), nullable=False, default="MRI")
    scan_date = Column(DateTime(timezone=True), default=_now, nullable=False)

    image_url = Column(Text, nullable=True)
    original_filename = Column(String(255), nullable=True)
    file_size = Column(BigInteger, nullable=True)

    scan_notes = Column(Text, nullable=True)
    referring_doctor = Column(String(255), nullable=True)
    technician_name = Column(String(255), nullable=True)

    # Written by the inference pipeline; "pending" until it picks the scan up
    status = Column(String(32), nullable=True, default=SCAN_STATUS_PENDING)

    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    patient = relationship("Patient", back_populates="scans")
    predictions = relationship(
        "Prediction",
        back_populates="scan",
        cascade="all, delete-orphan",
        order_by="Prediction.created_at.desc()",
    )

    __table_args__ = (
        Index("ix_scans_patient_created", "patient_id", "created_at"),
    )


# -------------------------
# AI predictions
# -------------------------
class Prediction(Base):
    __tablename__ = "predictions"

    id = Column(String(36), primary_key=True, default=_uuid)
    scan_id = Column(String(36), ForeignKey("scans.id", ondelete="CASCADE"), nullable=False, index=True)

    prediction_result = Column(String(255), nullable=False)
    confidence_score = Column(Float, nullable=True)
    tumor_location = Column(String(255), nullable=True)
    tumor_size_mm = Column(Float, nullable=True)
    additional_findings = Column(Text, nullable=True)

    doctor_notes = Column(Text, nullable=True)
    reviewed_by_doctor = Column(Boolean, default=False)

    model_version = Column(String(32), nullable=False, default="v1.0")
    processing_time_ms = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)

    scan = relationship("Scan", back_populates="predictions")
