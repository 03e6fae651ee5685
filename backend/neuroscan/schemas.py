# backend/neuroscan/schemas.py
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# ---------- Rows ----------
class PredictionOut(BaseModel):
    id: str
    scan_id: str
    prediction_result: str
    confidence_score: Optional[float] = None
    tumor_location: Optional[str] = None
    tumor_size_mm: Optional[float] = None
    additional_findings: Optional[str] = None
    doctor_notes: Optional[str] = None
    reviewed_by_doctor: Optional[bool] = None
    model_version: str
    processing_time_ms: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ScanOut(BaseModel):
    id: str
    patient_id: str
    scan_type: str
    scan_date: datetime
    image_url: Optional[str] = None
    original_filename: Optional[str] = None
    file_size: Optional[int] = None
    scan_notes: Optional[str] = None
    referring_doctor: Optional[str] = None
    technician_name: Optional[str] = None
    status: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    predictions: List[PredictionOut] = []

    class Config:
        from_attributes = True


class PatientOut(BaseModel):
    id: str
    patient_id: str
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    current_medications: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProfileOut(BaseModel):
    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    role: Optional[str] = None

    class Config:
        from_attributes = True


# ---------- Writes ----------
class PatientCreate(BaseModel):
    patient_id: str = Field(..., min_length=1, max_length=128)
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    current_medications: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None


# ---------- View models ----------
class Notification(BaseModel):
    title: str
    description: str
    variant: str = "default"  # "default" | "destructive"


class DashboardStats(BaseModel):
    total_patients: int = 0
    total_scans: int = 0
    ai_analyses: int = 0
    pending: int = 0


class DashboardView(BaseModel):
    greeting: str
    stats: DashboardStats
    show_patient_form: bool
    patients: List[PatientOut] = []
    selected_patient_id: Optional[str] = None
    show_scan_panels: bool = False
    scans: List[ScanOut] = []
    errors: Dict[str, str] = {}


class PatientFormResponse(BaseModel):
    notification: Optional[Notification] = None
    missing_fields: List[str] = []
    values: Dict[str, Optional[str]] = {}
    dashboard: Optional[DashboardView] = None


class ScanUploadResponse(BaseModel):
    scan: ScanOut
    dashboard: DashboardView
