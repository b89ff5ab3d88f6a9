"""
Tests for the SQLite consultation store.
"""

from consultlog.core.behavior.models import ConsultationRecord


def _record(name="김민수", date="2024-03-04", time="09:00", **kwargs) -> ConsultationRecord:
    return ConsultationRecord(
        date=date,
        time=time,
        student_id=kwargs.pop("student_id", "10101"),
        student_name=name,
        topic=kwargs.pop("topic", "교우 관계"),
        original_content=kwargs.pop("content", "먼저 사과하고 화해함."),
    )


def test_add_fills_id_and_timestamps(store):
    stored = store.add_consultation("t1", _record())

    assert stored.id
    assert stored.teacher_id == "t1"
    assert stored.created_at
    assert stored.updated_at
    assert store.get_consultation(stored.id) == stored


def test_list_is_newest_first_and_scoped_by_teacher(store):
    store.add_consultation("t1", _record(date="2024-03-01"))
    store.add_consultation("t1", _record(date="2024-03-05", time="08:00"))
    store.add_consultation("t1", _record(date="2024-03-05", time="14:00"))
    store.add_consultation("t2", _record(date="2024-03-09"))

    records = store.list_consultations("t1")

    assert [(r.date, r.time) for r in records] == [
        ("2024-03-05", "14:00"),
        ("2024-03-05", "08:00"),
        ("2024-03-01", "09:00"),
    ]
    assert len(store.list_consultations("t1", date="2024-03-05")) == 2
    assert store.list_consultations("nobody") == []


def test_update_summary(store):
    stored = store.add_consultation("t1", _record())

    assert store.update_summary(stored.id, "【상담 개요】 교우 관계")
    assert store.get_consultation(stored.id).ai_summary == "【상담 개요】 교우 관계"
    assert not store.update_summary("missing", "x")


def test_delete_consultation(store):
    stored = store.add_consultation("t1", _record())

    assert store.delete_consultation(stored.id)
    assert store.get_consultation(stored.id) is None
    assert not store.delete_consultation(stored.id)


def test_delete_student_removes_only_that_student(store):
    store.add_consultation("t1", _record(name="김민수"))
    store.add_consultation("t1", _record(name="김민수", date="2024-03-08"))
    store.add_consultation("t1", _record(name="이서연", student_id="10202"))
    store.add_consultation("t2", _record(name="김민수"))

    assert store.delete_student("t1", "김민수") == 2
    assert [r.student_name for r in store.list_consultations("t1")] == ["이서연"]
    assert len(store.list_consultations("t2")) == 1


def test_ping(store):
    assert store.ping()


def test_lock_counter_saturates_and_locks(store):
    assert store.get_lock("k") == {"failed_attempts": 0, "is_locked": False, "locked_at": None}

    for expected in (1, 2):
        state = store.increment_lock_failure("k", threshold=3)
        assert state["failed_attempts"] == expected
        assert not state["is_locked"]

    state = store.increment_lock_failure("k", threshold=3)
    assert state["failed_attempts"] == 3
    assert state["is_locked"]
    assert state["locked_at"]

    again = store.increment_lock_failure("k", threshold=3)
    assert again["failed_attempts"] == 3
    assert again["is_locked"]

    store.reset_lock("k")
    assert store.get_lock("k")["failed_attempts"] == 0
