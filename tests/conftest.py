"""
Fixtures for the GradTrack test suite.

The app is built once per session against in-memory SQLite; every test
runs inside an app context and leaves behind freshly recreated tables.
Directory rows (students, staff), the Proposal → Review catalogue and the
document ledger are available as fixtures or factories.
"""

from datetime import date, datetime

import pytest

from gradtrack import create_app
from gradtrack.models import db as _db
from gradtrack.models.document import DocumentRecord
from gradtrack.models.milestone import MilestoneTemplate
from gradtrack.models.people import StaffMember, Student


# ── Application and schema ───────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Each test gets an app context and an empty schema afterwards."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    return app.test_client()


# ── Directory, catalogue and documents ───────────────────────────────────


@pytest.fixture()
def student() -> Student:
    s = Student(
        id="S1001",
        first_name="Amara",
        last_name="Nwosu",
        email="amara@example.edu",
        program_id="PHD-CS",
        department_id="CS",
        enrolled_at=date(2024, 9, 1),
    )
    _db.session.add(s)
    _db.session.commit()
    return s


@pytest.fixture()
def other_student() -> Student:
    s = Student(id="S2002", first_name="Lee", last_name="Chen", program_id="MSC-BIO", department_id="BIO")
    _db.session.add(s)
    _db.session.commit()
    return s


@pytest.fixture()
def staff() -> StaffMember:
    m = StaffMember(id="STF01", first_name="Grace", last_name="Okafor", email="grace@example.edu")
    _db.session.add(m)
    _db.session.commit()
    return m


def _insert_template(name, sort_order, document_type=None, **kwargs) -> MilestoneTemplate:
    """Helper: insert a MilestoneTemplate row directly (bypasses service validation)."""
    template = MilestoneTemplate(
        name=name,
        sort_order=sort_order,
        document_type=document_type if document_type is not None else name,
        type=kwargs.pop("type", "Document"),
        alert_lead_days=kwargs.pop("alert_lead_days", 7),
        **kwargs,
    )
    _db.session.add(template)
    _db.session.commit()
    return template


@pytest.fixture()
def make_template():
    """Factory: insert a MilestoneTemplate (name, sort_order, document_type=None, **fields)."""
    return _insert_template


@pytest.fixture()
def proposal_review():
    """Two-template catalogue: Proposal (1) then Review (2)."""
    return (
        _insert_template("Proposal", 1, "Proposal"),
        _insert_template("Review", 2, "Review"),
    )


@pytest.fixture()
def make_document():
    """Factory: insert a DocumentRecord for a student."""

    def _make(student_id, document_type, status, uploaded_at=None, document_name=None):
        doc = DocumentRecord(
            student_id=student_id,
            document_name=document_name or f"{document_type}.pdf",
            document_type=document_type,
            status=status,
            uploaded_at=uploaded_at or datetime(2025, 1, 15, 12, 0),
        )
        _db.session.add(doc)
        _db.session.commit()
        return doc

    return _make
