"""Seed demo principals and print a bearer token for each."""
import sys
from pathlib import Path

# project root on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from thesisflow.db import Base, SessionLocal, engine
from thesisflow.models import DegreeLevel, Role, User
from thesisflow.services.identity import create_token

DEMO_PRINCIPALS = [
    dict(
        username="student",
        name="Demo Student",
        role=Role.STUDENT,
        faculty="Computer Science",
        group_name="CS-41",
        subject_area="Software Engineering",
        educational_program="Applied Informatics",
        degree_level=DegreeLevel.BACHELORS,
    ),
    dict(username="consultant", name="Demo Consultant", role=Role.CONSULTANT),
    dict(username="supervisor", name="Demo Supervisor", role=Role.SUPERVISOR, faculty="Computer Science"),
    dict(username="reviewer", name="Demo Reviewer", role=Role.REVIEWER),
    dict(username="head", name="Demo Head of Department", role=Role.HEAD_OF_DEPARTMENT),
    dict(username="dean", name="Demo Dean", role=Role.DEAN),
    dict(username="admin", name="Demo Admin", role=Role.ADMIN),
]


def seed():
    print("=" * 50)
    print("Seeding demo principals")
    print("=" * 50)

    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        for fields in DEMO_PRINCIPALS:
            user = db.query(User).filter(User.username == fields["username"]).first()
            if user is None:
                user = User(is_approved=True, **fields)
                if user.role is not Role.STUDENT:
                    user.institution = "Demo University"
                    user.positions = ["Associate Professor"]
                db.add(user)
                db.commit()
                db.refresh(user)
                print(f"  created {user.username} ({user.role.value})")
            else:
                print(f"  exists  {user.username} ({user.role.value})")
            print(f"    token: {create_token(user.id, user.role.value)}")


if __name__ == "__main__":
    seed()
