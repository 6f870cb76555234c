"""
Seed Milestone Templates — the standard postgraduate milestone set.

Usage:
    python scripts/seed_milestone_templates.py              # Uses development DB
    python scripts/seed_milestone_templates.py --env prod   # Uses production DB
    python scripts/seed_milestone_templates.py --demo       # Also adds a demo student

This script is idempotent — safe to run multiple times.
"""

import argparse
import os
import sys
from datetime import date, datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gradtrack import create_app
from gradtrack.models import db
from gradtrack.models.document import STATUS_APPROVED, STATUS_PENDING, DocumentRecord
from gradtrack.models.milestone import MilestoneTemplate
from gradtrack.models.people import StaffMember, Student
from gradtrack.services.milestone_feed import get_student_milestone_feed
from gradtrack.services.template_service import seed_default_templates

DEMO_STUDENT_ID = "PG2024001"
DEMO_STAFF_ID = "STF0001"

# (document_type, status, uploaded_at)
DEMO_DOCUMENTS = [
    ("Research Proposal", STATUS_APPROVED, datetime(2024, 11, 2, 10, 30)),
    ("Literature Review", STATUS_APPROVED, datetime(2025, 6, 14, 9, 0)),
    ("Data Analysis", STATUS_PENDING, datetime(2025, 9, 1, 16, 45)),
]


def seed_demo_student():
    """Create one student with a partial document ledger, plus a staff member."""
    if db.session.get(StaffMember, DEMO_STAFF_ID) is None:
        db.session.add(StaffMember(
            id=DEMO_STAFF_ID, first_name="Grace", last_name="Okafor",
            email="g.okafor@example.edu",
        ))
        print(f"  + staff member {DEMO_STAFF_ID}")

    if db.session.get(Student, DEMO_STUDENT_ID) is not None:
        print(f"  = student {DEMO_STUDENT_ID} already exists")
        db.session.commit()
        return

    db.session.add(Student(
        id=DEMO_STUDENT_ID, first_name="Amara", last_name="Nwosu",
        email="a.nwosu@example.edu", program_id="PHD-CS", department_id="CS",
        enrolled_at=date(2024, 9, 1),
    ))
    db.session.flush()
    for doc_type, status, uploaded_at in DEMO_DOCUMENTS:
        db.session.add(DocumentRecord(
            student_id=DEMO_STUDENT_ID,
            document_name=f"{doc_type}.pdf",
            document_type=doc_type,
            status=status,
            uploaded_at=uploaded_at,
        ))
    db.session.commit()
    print(f"  + student {DEMO_STUDENT_ID} with {len(DEMO_DOCUMENTS)} documents")


def main():
    parser = argparse.ArgumentParser(description="Seed the standard milestone templates")
    parser.add_argument("--env", default="development", help="App environment")
    parser.add_argument("--demo", action="store_true", help="Also create a demo student and ledger")
    args = parser.parse_args()

    os.environ.setdefault("APP_ENV", args.env)
    app = create_app(args.env)

    with app.app_context():
        print("=" * 60)
        print("  SEED: Milestone Templates")
        print("=" * 60)

        created = seed_default_templates()
        print(f"\n  Templates created: {created}")

        if args.demo:
            print("\n  Seeding demo student...")
            seed_demo_student()
            feed = get_student_milestone_feed(DEMO_STUDENT_ID)
            for item in feed.milestones:
                print(f"    {item.sort_order}. {item.name:<20} {item.status}")

        print("\n" + "=" * 60)
        print(f"  Active templates: {MilestoneTemplate.query.filter_by(is_active=True).count()}")
        print("=" * 60)


if __name__ == "__main__":
    main()
