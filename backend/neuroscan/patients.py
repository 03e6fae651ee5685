# backend/neuroscan/patients.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import queries
from .auth import AuthUser, get_current_user
from .dashboard import build_dashboard
from .db import get_db
from .errors import PatientNotFound, QueryError
from .patient_form import PatientForm
from .schemas import PatientFormResponse, PatientOut, ScanOut

router = APIRouter(tags=["patients"])


# ---------- List ----------
@router.get("/patients", response_model=List[PatientOut])
def list_patients(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return queries.list_patients(db, user.uid)
    except QueryError as e:
        raise HTTPException(status_code=502, detail=str(e))


# ---------- Create (form submit) ----------
@router.post("/patients", response_model=PatientFormResponse, status_code=201)
async def create_patient(
    request: Request,
    selected_patient_id: Optional[str] = Query(None),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form_data = await request.form()

    dash = build_dashboard(db, user, selected_patient_id)
    form = PatientForm(db, user.uid, on_patient_created=dash.handle_patient_created)
    form.bind(form_data)

    if form.missing_fields:
        body = PatientFormResponse(missing_fields=form.missing_fields, values=form.values)
        return JSONResponse(status_code=422, content=body.model_dump(mode="json"))

    notification = form.submit()
    if notification is not None and notification.variant == "destructive":
        body = PatientFormResponse(notification=notification, values=form.values)
        return JSONResponse(status_code=400, content=body.model_dump(mode="json"))

    return PatientFormResponse(notification=notification, values=form.values, dashboard=dash.view())


# ---------- Scan history ----------
@router.get("/patients/{patient_id}/scans", response_model=List[ScanOut])
def scan_history(
    patient_id: str,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        queries.get_patient(db, patient_id, user.uid)
        return queries.list_scans_for_patient(db, patient_id, user.uid)
    except PatientNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except QueryError as e:
        raise HTTPException(status_code=502, detail=str(e))
