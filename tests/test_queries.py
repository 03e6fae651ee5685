import pytest
from sqlalchemy.exc import OperationalError

from neuroscan import queries
from neuroscan.errors import PatientNotFound, QueryError, ScanNotFound, ValidationError
from neuroscan.models import Patient

from factories import add_patient, add_prediction, add_scan


class BrokenSession:
    def query(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection lost"))


class FailingCommitSession:
    def __init__(self):
        self.rolled_back = False

    def add(self, obj):
        pass

    def commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    def rollback(self):
        self.rolled_back = True


def test_list_patients_newest_first(db):
    add_patient(db, "user-1", "A2", id="p2", created_at="2024-01-01T00:00:00")
    add_patient(db, "user-1", "A1", id="p1", created_at="2024-01-02T00:00:00")

    rows = queries.list_patients(db, "user-1")

    assert [p.id for p in rows] == ["p1", "p2"]


def test_list_patients_only_returns_own_rows(db):
    add_patient(db, "user-1", "A1")
    add_patient(db, "user-2", "B1")

    rows = queries.list_patients(db, "user-1")

    assert [p.patient_id for p in rows] == ["A1"]


def test_list_patients_empty_is_not_an_error(db):
    assert queries.list_patients(db, "nobody") == []
    assert queries.list_patients(db, None) == []


def test_list_patients_transport_failure_raises_query_error():
    with pytest.raises(QueryError):
        queries.list_patients(BrokenSession(), "user-1")


def test_list_scans_nests_predictions_newest_first(db):
    patient = add_patient(db, "user-1", "A1")
    older = add_scan(db, patient, id="s-old", created_at="2024-01-01T00:00:00")
    newer = add_scan(db, patient, id="s-new", status="done", created_at="2024-02-01T00:00:00")
    add_prediction(db, newer, result="Meningioma", confidence_score=0.91)
    add_prediction(db, newer, result="Glioma", confidence_score=0.05)

    rows = queries.list_scans_for_patient(db, patient.id, "user-1")

    assert [s.id for s in rows] == [newer.id, older.id]
    assert len(rows[0].predictions) == 2
    assert rows[1].predictions == []


def test_list_scans_without_patient_returns_empty(db):
    assert queries.list_scans_for_patient(db, None, "user-1") == []
    assert queries.list_scans_for_patient(db, "", "user-1") == []


def test_list_scans_for_foreign_patient_returns_empty(db):
    patient = add_patient(db, "user-2", "B1")
    add_scan(db, patient)

    assert queries.list_scans_for_patient(db, patient.id, "user-1") == []


def test_create_patient_stores_absent_fields_as_null(db):
    patient = queries.create_patient(db, "user-1", {"patient_id": "MRN-7", "allergies": "penicillin"})

    assert patient.patient_id == "MRN-7"
    assert patient.allergies == "penicillin"
    assert patient.medical_history is None
    assert patient.emergency_contact_phone is None
    assert patient.user_id == "user-1"


def test_create_patient_ignores_client_supplied_owner(db):
    patient = queries.create_patient(db, "user-1", {"patient_id": "MRN-8", "user_id": "intruder"})

    assert patient.user_id == "user-1"


@pytest.mark.parametrize("label", [None, "", "   "])
def test_create_patient_requires_patient_id(db, label):
    with pytest.raises(ValidationError):
        queries.create_patient(db, "user-1", {"patient_id": label, "allergies": "none"})

    assert db.query(Patient).count() == 0


def test_create_patient_duplicate_label_is_rejected_with_message(db):
    queries.create_patient(db, "user-1", {"patient_id": "MRN-1"})

    with pytest.raises(ValidationError) as exc:
        queries.create_patient(db, "user-1", {"patient_id": "MRN-1"})

    assert "MRN-1" in str(exc.value)
    assert "already exists" in str(exc.value)
    assert db.query(Patient).count() == 1


def test_same_label_allowed_for_different_accounts(db):
    queries.create_patient(db, "user-1", {"patient_id": "MRN-1"})
    queries.create_patient(db, "user-2", {"patient_id": "MRN-1"})

    assert db.query(Patient).count() == 2


def test_get_patient_checks_ownership(db):
    patient = add_patient(db, "user-2", "B1")

    with pytest.raises(PatientNotFound):
        queries.get_patient(db, patient.id, "user-1")
    assert queries.get_patient(db, patient.id, "user-2").id == patient.id


def test_create_scan_starts_pending(db):
    patient = add_patient(db, "user-1", "A1")

    scan = queries.create_scan(db, patient, {"original_filename": "brain.png", "file_size": 12})

    assert scan.status == "pending"
    assert scan.scan_type == "MRI"
    assert scan.file_size == 12


def test_upsert_profile_keeps_existing_name(db):
    queries.upsert_profile(db, user_id="uid-1", email="a@example.com", full_name="Dr. Ada")
    profile = queries.upsert_profile(db, user_id="uid-1", email="b@example.com", full_name="Someone Else")

    assert profile.full_name == "Dr. Ada"
    assert profile.email == "b@example.com"


def test_close_session_sets_end_once(db):
    sess = queries.open_session(db, user_id="uid-1", login_method="google.com")
    closed = queries.close_session(db, session_id=sess.id, user_id="uid-1")
    first_end = closed.session_end

    again = queries.close_session(db, session_id=sess.id, user_id="uid-1")

    assert first_end is not None
    assert again.session_end == first_end
    assert queries.close_session(db, session_id=sess.id, user_id="someone-else") is None


def test_create_scan_uses_given_id(db):
    patient = add_patient(db, "user-1", "A1")

    scan = queries.create_scan(db, patient, {"original_filename": "brain.png"}, scan_id="scan-fixed")

    assert scan.id == "scan-fixed"
    assert queries.get_scan(db, patient, "scan-fixed").original_filename == "brain.png"


def test_create_scan_commit_failure_rolls_back():
    session = FailingCommitSession()
    patient = Patient(id="p1", user_id="user-1", patient_id="A1")

    with pytest.raises(ValidationError):
        queries.create_scan(session, patient, {"original_filename": "brain.png"})

    assert session.rolled_back


def test_get_scan_is_scoped_to_patient(db):
    owner = add_patient(db, "user-1", "A1")
    other = add_patient(db, "user-1", "A2")
    scan = add_scan(db, owner)

    with pytest.raises(ScanNotFound):
        queries.get_scan(db, other, scan.id)


def test_open_session_commit_failure_raises_validation_error():
    session = FailingCommitSession()

    with pytest.raises(ValidationError) as exc:
        queries.open_session(session, user_id="uid-1")

    assert session.rolled_back
    assert "login session" in str(exc.value)


def test_close_session_lookup_failure_raises_query_error():
    with pytest.raises(QueryError):
        queries.close_session(BrokenSession(), session_id="s1", user_id="uid-1")
