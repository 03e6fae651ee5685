# backend/neuroscan/patient_form.py
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from . import queries
from .errors import DataAccessError
from .schemas import Notification

log = logging.getLogger("uvicorn.error")

# browser input name -> patients column
FORM_FIELDS = {
    "patientId": "patient_id",
    "medicalHistory": "medical_history",
    "allergies": "allergies",
    "medications": "current_medications",
    "emergencyName": "emergency_contact_name",
    "emergencyPhone": "emergency_contact_phone",
}
REQUIRED_FIELDS = ("patient_id",)

SUCCESS_MESSAGE = "Patient profile created successfully!"
FAILURE_MESSAGE = "Failed to create patient profile"


class PatientForm:
    """
    Patient profile creation form.

    Only the presence of patient_id is checked here; everything else is free
    text handed to the backend untouched. While a submission is in flight the
    form is disabled and further submits are dropped. Values are kept after a
    failed submit so the user can correct and retry.
    """

    def __init__(
        self,
        db: Session,
        user_id: Optional[str],
        on_patient_created: Optional[Callable[[], None]] = None,
        create: Callable = queries.create_patient,
    ):
        self.db = db
        self.user_id = user_id
        self.on_patient_created = on_patient_created
        self._create = create
        self.values: Dict[str, Optional[str]] = {col: None for col in FORM_FIELDS.values()}
        self.is_submitting = False
        self.notification: Optional[Notification] = None

    @property
    def disabled(self) -> bool:
        return self.is_submitting

    def bind(self, data: Mapping[str, Any]) -> "PatientForm":
        """Take values from submitted form data (input names or column names)."""
        for name, col in FORM_FIELDS.items():
            raw = data.get(name)
            if raw is None:
                raw = data.get(col)
            if raw is None:
                continue
            raw = str(raw)
            # blank input means "not provided"
            self.values[col] = raw if raw.strip() else None
        return self

    @property
    def missing_fields(self) -> List[str]:
        return [col for col in REQUIRED_FIELDS if not self.values.get(col)]

    def submit(self) -> Optional[Notification]:
        if not self.user_id or self.is_submitting or self.missing_fields:
            return None

        self.is_submitting = True
        try:
            self._create(self.db, self.user_id, self.values)
            self.notification = Notification(title="Success", description=SUCCESS_MESSAGE)
            if self.on_patient_created is not None:
                self.on_patient_created()
        except DataAccessError as e:
            log.warning("patient form submit failed: %s", e)
            self.notification = Notification(
                title="Error",
                description=str(e) or FAILURE_MESSAGE,
                variant="destructive",
            )
        finally:
            self.is_submitting = False
        return self.notification
