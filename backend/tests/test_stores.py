from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError

from conftest import reading

from cybercheck.database import activity_logs, attendance, users
from cybercheck.exceptions import AttendancePersistenceError, LessonNotFoundError
from cybercheck.gps.models import CheckinDecision, CheckinStatus
from cybercheck.gps.thresholds import DetectionLevel
from cybercheck.identity import Role
from cybercheck.pins import generate_pin, issue_pin
from cybercheck.security import hash_password, verify_password
from cybercheck.stores import AttendanceStore, AuditLog, LessonRepository, UserRepository


def count_rows(db, table):
    return db.execute(select(func.count()).select_from(table)).scalar_one()


def test_finds_active_lesson_by_pin(db, make_lesson):
    make_lesson(fake_detection_level="maximal", allow_skip_gps=True, pin_validity_seconds=45)

    lesson = LessonRepository(db).find_active_lesson_by_pin("123456")

    assert lesson.lesson_id == "lesson-1"
    assert lesson.radius_meters == 120.0
    assert lesson.detection_level is DetectionLevel.MAXIMAL
    assert lesson.allow_skip_gps is True
    assert lesson.pin_validity_seconds == 45


def test_expired_inactive_and_unknown_pins_do_not_match(db, make_lesson):
    make_lesson(id="expired", pin_code="111111", pin_expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
    make_lesson(id="closed", pin_code="222222", is_active=False)
    repo = LessonRepository(db)

    assert repo.find_active_lesson_by_pin("111111") is None
    assert repo.find_active_lesson_by_pin("222222") is None
    assert repo.find_active_lesson_by_pin("999999") is None


def test_missing_radius_and_bad_level_use_defaults(db, make_lesson):
    make_lesson(radius_meters=None, fake_detection_level="paranoid")

    lesson = LessonRepository(db, default_radius_meters=150.0).find_active_lesson_by_pin("123456")

    assert lesson.radius_meters == 150.0
    assert lesson.detection_level is DetectionLevel.MEDIUM


def test_upsert_keeps_one_row_per_lesson_and_student(db, make_lesson):
    make_lesson()
    store = AttendanceStore(db)

    store.upsert_attendance(
        "lesson-1", "student-1",
        CheckinDecision(CheckinStatus.SUSPICIOUS, 300.0, False, ["too far: 300m (allowed 120m)"]),
        reading=reading(), fingerprint="fp-1", user_agent="ua-1",
    )
    store.upsert_attendance(
        "lesson-1", "student-1",
        CheckinDecision(CheckinStatus.PRESENT, 40.0, False, []),
        reading=reading(), fingerprint="fp-2", user_agent="ua-2",
    )
    store.upsert_attendance(
        "lesson-1", "student-2",
        CheckinDecision(CheckinStatus.PRESENT, 10.0, False, []),
    )

    rows = {row["student_id"]: row for row in store.list_for_lesson("lesson-1")}
    assert count_rows(db, attendance) == 2
    assert rows["student-1"]["status"] == "present"
    assert rows["student-1"]["distance_meters"] == 40.0
    assert rows["student-1"]["suspicious_reason"] is None
    assert rows["student-1"]["fingerprint"] == "fp-2"
    assert rows["student-2"]["latitude"] is None


def test_upsert_failure_raises_persistence_error():
    db = MagicMock()
    db.execute.side_effect = OperationalError("UPDATE attendance", {}, Exception("database is locked"))

    with pytest.raises(AttendancePersistenceError):
        AttendanceStore(db).upsert_attendance(
            "lesson-1", "student-1", CheckinDecision(CheckinStatus.PRESENT, 5.0),
        )

    db.rollback.assert_called_once()
    db.commit.assert_not_called()


def test_audit_log_records_events(db):
    AuditLog(db).record("student-1", "checkin", {"lesson_id": "lesson-1", "status": "present"})

    row = db.execute(select(activity_logs)).mappings().one()
    assert row["user_id"] == "student-1"
    assert row["action"] == "checkin"
    assert row["details"]["status"] == "present"
    assert row["created_at"] is not None


def test_audit_log_failures_are_swallowed():
    db = MagicMock()
    db.execute.side_effect = OperationalError("INSERT activity_logs", {}, Exception("disk full"))

    AuditLog(db).record("student-1", "checkin", {})

    db.rollback.assert_called_once()


def test_generate_pin():
    for _ in range(50):
        pin = generate_pin()
        assert len(pin) == 6
        assert pin.isdigit()
    assert len(generate_pin(8)) == 8


def test_issue_pin_reopens_lesson(db, make_lesson):
    make_lesson(pin_code="000000", is_active=False)
    repo = LessonRepository(db)
    now = datetime.now(timezone.utc)

    pin, expires_at = issue_pin(repo, "lesson-1", 30, now=now)

    assert expires_at == now + timedelta(seconds=30)
    lesson = repo.find_active_lesson_by_pin(pin)
    assert lesson is not None
    assert lesson.pin_validity_seconds == 30


def test_issue_pin_for_unknown_lesson(db):
    with pytest.raises(LessonNotFoundError):
        issue_pin(LessonRepository(db), "missing", 60)


def test_closed_lesson_no_longer_matches_pin(db, make_lesson):
    make_lesson()
    repo = LessonRepository(db)

    repo.set_active("lesson-1", False)

    assert repo.find_active_lesson_by_pin("123456") is None
    assert repo.get_lesson("lesson-1")["is_active"] is False


def test_reopen_extends_pin_deadline(db, make_lesson):
    make_lesson(is_active=False, pin_expires_at=datetime.now(timezone.utc) - timedelta(hours=2))
    repo = LessonRepository(db)

    repo.set_active("lesson-1", True, pin_expires_at=datetime.now(timezone.utc) + timedelta(hours=1))

    assert repo.find_active_lesson_by_pin("123456") is not None


def test_set_active_for_unknown_lesson(db):
    with pytest.raises(LessonNotFoundError):
        LessonRepository(db).set_active("missing", False)


def test_user_lookup_skips_disabled_accounts(db):
    repo = UserRepository(db)
    identity = repo.create_user("u-1", "aziza", hash_password("pw"), Role.STUDENT, "Aziza Karimova")
    repo.create_user("u-2", "gone", hash_password("pw"), Role.TEACHER)
    db.execute(update(users).where(users.c.id == "u-2").values(is_active=False))
    db.commit()

    assert identity.role is Role.STUDENT
    user = repo.find_active_by_login("aziza")
    assert user["id"] == "u-1"
    assert verify_password("pw", user["password_hash"])
    assert not verify_password("other", user["password_hash"])
    assert repo.find_active_by_login("gone") is None
    assert repo.find_active_by_login("nobody") is None


def test_duplicate_login_is_rejected(db):
    repo = UserRepository(db)
    repo.create_user("u-1", "aziza", hash_password("pw"), Role.STUDENT)

    with pytest.raises(IntegrityError):
        repo.create_user("u-2", "aziza", hash_password("pw"), Role.STUDENT)

    assert repo.find_active_by_login("aziza")["id"] == "u-1"


def test_verify_password_rejects_unknown_hash_format():
    assert verify_password("pw", "plaintext") is False
