from __future__ import annotations

import argparse

from pblab.extensions import db
from pblab.models import Course, User, UserRole
from pblab.services.identity import Actor
from pblab.services.problems import create_problem

DEMO_PASSWORD = "ChangeMe123!"
DEMO_COURSE = "PBL Demo Course"


def create_admin(email: str, name: str, password: str) -> User:
    session = db.session
    email = email.lower().strip()
    user = session.query(User).filter(User.email == email).first()
    if user:
        print(f"User {email} already exists ({user.role}).")
        return user

    user = User(email=email, name=name, role=UserRole.ADMIN.value)
    user.set_password(password)
    session.add(user)
    session.commit()
    print(f"Admin created: {email}")
    return user


def _get_or_create_user(email: str, name: str, role: UserRole) -> User:
    session = db.session
    user = session.query(User).filter(User.email == email).first()
    if user is None:
        user = User(email=email, name=name, role=role.value)
        user.set_password(DEMO_PASSWORD)
        session.add(user)
        session.commit()
    return user


def seed_demo() -> None:
    session = db.session
    educator = _get_or_create_user("teacher@example.com", "Terry Teacher", UserRole.EDUCATOR)
    s1 = _get_or_create_user("s1@example.com", "Kai Nguyen", UserRole.STUDENT)
    s2 = _get_or_create_user("s2@example.com", "Mia Singh", UserRole.STUDENT)

    course = session.query(Course).filter(Course.name == DEMO_COURSE).first()
    if course is None:
        course = Course(name=DEMO_COURSE, admin_id=educator.id)
        session.add(course)
        session.commit()
    elif course.problems:
        print("Demo data already present.")
        return

    result = create_problem(
        session,
        Actor.from_user(educator),
        "Outbreak Simulator",
        course.id,
        {
            "name": "Outbreak Simulator Rubric",
            "criteria": [
                {"criterion_text": text, "max_score": 5, "sort_order": i}
                for i, text in enumerate([
                    "Problem definition",
                    "Research quality",
                    "Model design",
                    "Collaboration",
                    "Communication of findings",
                ])
            ],
        },
        description="Model how a disease spreads through a school and recommend interventions.",
        teams=[{"name": "Team Alpha", "student_ids": [s1.id, s2.id]}],
    )
    print(f"Demo problem created: {result['problem_id']}")
    for invite in result["invites"]:
        print(f"  invite for {invite['team_name']}: {invite['invite_token']}")
    print(f"Demo logins use the password {DEMO_PASSWORD}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Database setup and seed-data utilities.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    admin = subparsers.add_parser("create-admin", help="Create the schema and a first admin account.")
    admin.add_argument("--email", required=True)
    admin.add_argument("--name", default="Administrator")
    admin.add_argument("--password", required=True)

    subparsers.add_parser("seed-demo", help="Seed an educator, two students and the Outbreak Simulator problem.")
    subparsers.add_parser("reset-database", help="Drop and recreate every table.")
    return parser


def main() -> None:
    args = _build_parser().parse_args()
    try:
        if args.command == "reset-database":
            db.drop_all()
            db.create_all()
            print("Database recreated.")
        else:
            db.create_all()
            if args.command == "create-admin":
                create_admin(args.email, args.name, args.password)
            elif args.command == "seed-demo":
                seed_demo()
    finally:
        db.remove_session()


if __name__ == "__main__":
    main()
