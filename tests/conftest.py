import os
import pathlib
import sys
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from planner.app import create_app, db
from planner.models import (
    CurriculumSession,
    Enrollment,
    Group,
    Student,
    Training,
    TrainingLevel,
    User,
)
from planner.shared import time as time_utils

# 09:00 in Africa/Tunis (UTC+1, no DST).
FROZEN_NOW = datetime(2030, 3, 4, 8, 0, tzinfo=timezone.utc)


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords:
            continue
        item.add_marker("full")
        item.add_marker("smoke")


@pytest.fixture
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    application = create_app({"TESTING": True, "SIDE_EFFECT_WORKERS": 0})
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def freeze_now(monkeypatch):
    """Pin the clock; call the returned function to move it."""
    state = {"now": FROZEN_NOW}
    monkeypatch.setattr(time_utils, "now_utc", lambda: state["now"])

    def _set(value: datetime) -> None:
        state["now"] = value

    return _set


@pytest.fixture
def login_as(client):
    def _login(user_id):
        with client.session_transaction() as sess:
            sess["user_id"] = user_id

    return _login


@pytest.fixture
def seed(app):
    """Staff, a two-level curriculum and a group of three enrolled students."""

    admin = User(email="admin@example.com", first_name="Ada", last_name="Admin", is_admin=True)
    manager = User(
        email="manager@example.com", first_name="Mona", last_name="Manager", is_manager=True
    )
    both = User(
        email="boss@example.com",
        first_name="Bo",
        last_name="Boss",
        is_admin=True,
        is_manager=True,
    )
    disabled = User(
        email="gone@example.com", is_manager=True, status="DISABLED"
    )
    trainer = User(
        email="trainer@example.com", first_name="Tarek", last_name="Trainer", is_trainer=True
    )
    other_trainer = User(
        email="trainer2@example.com", first_name="Olfa", last_name="Other", is_trainer=True
    )

    training = Training(title="Robotics 101")
    for level_no in (1, 2):
        level = TrainingLevel(level_number=level_no, title=f"Level {level_no}")
        for session_no in (1, 2):
            level.sessions.append(
                CurriculumSession(
                    id=f"s-{level_no}-{session_no}",
                    session_number=session_no,
                    title=f"Session {level_no}.{session_no}",
                )
            )
        training.levels.append(level)

    students = [
        Student(first_name="Sami", last_name="Zed"),
        Student(first_name="Amal", last_name="Ben"),
        Student(first_name="Rim", last_name="Kaci"),
    ]
    group = Group(name="Group A", training=training, trainer=trainer)
    db.session.add_all(
        [admin, manager, both, disabled, trainer, other_trainer, training, group, *students]
    )
    db.session.flush()
    for student in students:
        group.add_student(student)
        db.session.add(
            Enrollment(student_id=student.id, training_id=training.id, group_id=group.id)
        )
    db.session.commit()

    return SimpleNamespace(
        admin_id=admin.id,
        manager_id=manager.id,
        both_id=both.id,
        disabled_id=disabled.id,
        trainer_id=trainer.id,
        other_trainer_id=other_trainer.id,
        training_id=training.id,
        group_id=group.id,
        student_ids=[s.id for s in students],
        session_ids=["s-1-1", "s-1-2", "s-2-1", "s-2-2"],
    )


@pytest.fixture
def seance_payload(seed):
    def _payload(**overrides):
        payload = {
            "training_id": seed.training_id,
            "session_id": "s-1-1",
            "group_id": seed.group_id,
            "trainer_id": seed.trainer_id,
            "date": "2030-03-04",
            "start_time": "09:00",
            "end_time": "10:00",
            "level_number": 1,
            "session_number": 1,
            "title": "Intro to motors",
        }
        payload.update(overrides)
        return payload

    return _payload
