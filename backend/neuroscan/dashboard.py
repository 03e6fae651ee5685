# backend/neuroscan/dashboard.py
"""
Dashboard composition.

A Dashboard holds the fetched patient and scan lists for one signed-in user
plus the selected patient id. Lists are only ever replaced by a fresh query,
never patched in place: mutations elsewhere call handle_patient_created() or
handle_scan_uploaded() and the matching list is read again from the backend.
"""
import logging
from typing import Callable, Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from . import queries
from .auth import AuthUser, display_name, get_current_user
from .db import get_db
from .errors import PatientNotFound, QueryError
from .models import SCAN_STATUS_PENDING
from .schemas import DashboardStats, DashboardView, PatientOut, ScanOut

router = APIRouter(prefix="/dashboard", tags=["dashboard"])
log = logging.getLogger("uvicorn.error")


# ---------- Derived counts ----------
def count_ai_analyses(scans: Iterable) -> int:
    """Scans with at least one prediction attached."""
    return sum(1 for s in scans if getattr(s, "predictions", None))


def count_pending(scans: Iterable) -> int:
    return sum(1 for s in scans if getattr(s, "status", None) == SCAN_STATUS_PENDING)


def compute_stats(patients: List, scans: List) -> DashboardStats:
    return DashboardStats(
        total_patients=len(patients),
        total_scans=len(scans),
        ai_analyses=count_ai_analyses(scans),
        pending=count_pending(scans),
    )


# ---------- State ----------
class Dashboard:
    def __init__(
        self,
        db: Session,
        user: Optional[AuthUser],
        selected_patient_id: Optional[str] = None,
        fetch_patients: Callable = queries.list_patients,
        fetch_scans: Callable = queries.list_scans_for_patient,
    ):
        self.db = db
        self.user = user
        self.selected_patient_id = selected_patient_id or None
        self.patients: List = []
        self.scans: List = []
        self.errors: Dict[str, str] = {}
        self._fetch_patients = fetch_patients
        self._fetch_scans = fetch_scans

    @property
    def user_id(self) -> Optional[str]:
        return self.user.uid if self.user else None

    def load(self) -> "Dashboard":
        requested = self.selected_patient_id
        self.refetch_patients()
        if requested is not None:
            if "patients" not in self.errors and requested not in self._patient_ids():
                raise PatientNotFound()
            self.refetch_scans()
        return self

    def _patient_ids(self) -> set:
        return {p.id for p in self.patients}

    def refetch_patients(self) -> None:
        if not self.user_id:
            self.patients = []
            return
        try:
            rows = self._fetch_patients(self.db, self.user_id)
        except QueryError as e:
            # keep whatever was shown before
            self.errors["patients"] = str(e)
            return
        self.errors.pop("patients", None)
        self.patients = list(rows)
        self._latch_first_patient()

    def _latch_first_patient(self) -> None:
        # Only fills an empty selection; never overrides one.
        if self.patients and self.selected_patient_id is None:
            self._set_selection(self.patients[0].id)

    def _set_selection(self, patient_id: str) -> None:
        if patient_id == self.selected_patient_id:
            return
        self.selected_patient_id = patient_id
        self.refetch_scans()

    def select_patient(self, patient_id: str) -> None:
        if patient_id not in self._patient_ids():
            raise PatientNotFound()
        self._set_selection(patient_id)

    def refetch_scans(self) -> None:
        if not self.selected_patient_id or not self.user_id:
            self.scans = []
            return
        try:
            rows = self._fetch_scans(self.db, self.selected_patient_id, self.user_id)
        except QueryError as e:
            self.errors["scans"] = str(e)
            return
        self.errors.pop("scans", None)
        self.scans = list(rows)

    # callbacks handed to the form and upload components
    def handle_patient_created(self) -> None:
        self.refetch_patients()

    def handle_scan_uploaded(self) -> None:
        self.refetch_scans()

    @property
    def stats(self) -> DashboardStats:
        scans = self.scans if self.selected_patient_id else []
        return compute_stats(self.patients, scans)

    def greeting(self) -> str:
        profile = None
        if self.user_id:
            try:
                profile = queries.get_profile(self.db, self.user_id)
            except QueryError as e:
                self.errors["profile"] = str(e)
        return f"Welcome back, {display_name(self.user, profile)}"

    def view(self) -> DashboardView:
        selected = self.selected_patient_id
        return DashboardView(
            greeting=self.greeting(),
            stats=self.stats,
            show_patient_form=not self.patients,
            patients=[PatientOut.model_validate(p) for p in self.patients],
            selected_patient_id=selected,
            show_scan_panels=selected is not None,
            scans=[ScanOut.model_validate(s) for s in self.scans] if selected else [],
            errors=dict(self.errors),
        )


def build_dashboard(db: Session, user: AuthUser, selected_patient_id: Optional[str] = None) -> Dashboard:
    try:
        return Dashboard(db, user, selected_patient_id=selected_patient_id).load()
    except PatientNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


# ---------- Endpoints ----------
@router.get("", response_model=DashboardView)
def get_dashboard(
    selected_patient_id: Optional[str] = Query(None),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return build_dashboard(db, user, selected_patient_id).view()


@router.post("/select/{patient_id}", response_model=DashboardView)
def select_patient(
    patient_id: str,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    # seeding the selection skips the latch, so only this patient's scans are read
    return build_dashboard(db, user, patient_id).view()
