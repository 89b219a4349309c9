"""
LessonLifecycle: create/cancel/edit/report/verdict and the listings.
"""

from datetime import timedelta

import pytest

from lesson_service.core.enums import LessonFormat, LessonStatus
from lesson_service.core.exceptions import (
    ConflictException,
    DomainException,
    ErrorCode,
    InvalidStatusUpdateException,
    NotFoundException,
    RepositoryException,
    StorageException,
    ValidationException,
)
from lesson_service.core.config import settings
from lesson_service.repositories.enrollment_repository import EnrollmentRepository
from lesson_service.repositories.scheduling_store import SchedulingStore, UnitOfWork
from lesson_service.services.lesson_lifecycle import LessonLifecycle
from tests.factories.lesson_builders import (
    create_lesson,
    create_tutor,
    load_enrollment,
    load_lesson,
)
from tests.helpers.clock import FROZEN_NOW
from tests.helpers.concurrency import race

pytestmark = pytest.mark.integration

NOW = FROZEN_NOW


def _create(lifecycle: LessonLifecycle, appointed, user_id: str = "tutor-1", **overrides):
    fields = dict(
        tutor_user_id=user_id,
        tutor_full_name="Tina Tutor",
        tutor_email=f"{user_id}@example.com",
        subject_name="Math",
        grade="10",
        level="A",
        description="Algebra basics",
        appointed_date_time=appointed,
        format=LessonFormat.ONLINE,
        location_or_link="https://meet.example.com/abc",
    )
    fields.update(overrides)
    return lifecycle.create_lesson(**fields)


class TestCreateLesson:
    def test_creates_open_lesson_and_tutor(self, lifecycle: LessonLifecycle, store: SchedulingStore):
        lesson = _create(lifecycle, NOW + timedelta(days=1))

        assert lesson.status == LessonStatus.CREATED.value
        assert lesson.enrollments == []
        assert lesson.tutor.user_id == "tutor-1"
        assert load_lesson(store, lesson.id).appointed_date_time == NOW + timedelta(days=1)

    def test_tutor_row_is_reused(self, lifecycle: LessonLifecycle):
        first = _create(lifecycle, NOW + timedelta(days=1))
        second = _create(lifecycle, NOW + timedelta(days=2))
        assert first.tutor_id == second.tutor_id
        assert lifecycle.get_or_create_tutor("tutor-1", "Renamed").id == first.tutor_id

    def test_seventh_open_lesson_is_refused(self, lifecycle: LessonLifecycle, store: SchedulingStore):
        for day in range(1, 7):
            _create(lifecycle, NOW + timedelta(days=day))

        with pytest.raises(ConflictException) as exc_info:
            _create(lifecycle, NOW + timedelta(days=8))

        assert exc_info.value.code is ErrorCode.LESSON_LIMIT_REACHED
        assert exc_info.value.details == {"open_lessons": 6, "limit": 6}
        assert len(lifecycle.get_lessons_of_tutor("tutor-1", "upcoming")) == 6

    def test_lesson_starting_now_still_counts(
        self, lifecycle: LessonLifecycle, store: SchedulingStore
    ):
        tutor = create_tutor(store, user_id="tutor-1")
        create_lesson(store, tutor, NOW)
        for day in range(1, 6):
            _create(lifecycle, NOW + timedelta(days=day))

        with pytest.raises(ConflictException) as exc_info:
            _create(lifecycle, NOW + timedelta(days=7))

        assert exc_info.value.code is ErrorCode.LESSON_LIMIT_REACHED
        assert exc_info.value.details["open_lessons"] == 6

    def test_past_and_closed_lessons_do_not_count(
        self, lifecycle: LessonLifecycle, store: SchedulingStore
    ):
        tutor = create_tutor(store, user_id="tutor-1")
        create_lesson(store, tutor, NOW - timedelta(days=1))
        create_lesson(store, tutor, NOW + timedelta(days=9), status=LessonStatus.CANCELED)
        for day in range(1, 6):
            _create(lifecycle, NOW + timedelta(days=day))

        assert _create(lifecycle, NOW + timedelta(days=6)).status == "created"

    @pytest.mark.parametrize("minutes", [0, 30, 60, -60])
    def test_overlapping_lesson_is_refused(self, lifecycle: LessonLifecycle, minutes):
        slot = NOW + timedelta(days=1)
        _create(lifecycle, slot)

        with pytest.raises(ConflictException) as exc_info:
            _create(lifecycle, slot + timedelta(minutes=minutes))

        assert exc_info.value.code is ErrorCode.OVERLAPPING_LESSON

    def test_just_outside_the_window_is_fine(self, lifecycle: LessonLifecycle):
        slot = NOW + timedelta(days=1)
        _create(lifecycle, slot)
        assert _create(lifecycle, slot + timedelta(minutes=61)).status == "created"

    def test_limit_is_checked_before_overlap(self, lifecycle: LessonLifecycle):
        for day in range(1, 7):
            _create(lifecycle, NOW + timedelta(days=day))

        with pytest.raises(ConflictException) as exc_info:
            _create(lifecycle, NOW + timedelta(days=1))

        assert exc_info.value.code is ErrorCode.LESSON_LIMIT_REACHED

    def test_other_tutors_may_share_a_slot(self, lifecycle: LessonLifecycle):
        slot = NOW + timedelta(days=1)
        _create(lifecycle, slot, user_id="tutor-a")
        assert _create(lifecycle, slot, user_id="tutor-b").status == "created"


class TestCreateRaces:
    def test_only_one_create_takes_the_last_open_slot(
        self, lifecycle: LessonLifecycle, store: SchedulingStore
    ):
        tutor = create_tutor(store, user_id="tutor-1")
        for day in range(1, 6):
            create_lesson(store, tutor, NOW + timedelta(days=day))
        calls = [(NOW + timedelta(days=7 + i),) for i in range(4)]

        results = race(lambda appointed: _create(lifecycle, appointed), calls)

        failures = [r for r in results if isinstance(r, DomainException)]
        assert len(results) - len(failures) == 1
        assert {f.code for f in failures} == {ErrorCode.LESSON_LIMIT_REACHED}
        assert len(lifecycle.get_lessons_of_tutor("tutor-1", "upcoming")) == 6

    def test_only_one_create_takes_a_contested_time(
        self, lifecycle: LessonLifecycle, store: SchedulingStore
    ):
        create_tutor(store, user_id="tutor-1")
        slot = NOW + timedelta(days=1)
        calls = [(slot + timedelta(minutes=minutes),) for minutes in (0, 15, 30)]

        results = race(lambda appointed: _create(lifecycle, appointed), calls)

        failures = [r for r in results if isinstance(r, DomainException)]
        assert len(results) - len(failures) == 1
        assert {f.code for f in failures} == {ErrorCode.OVERLAPPING_LESSON}
        assert len(lifecycle.get_lessons_of_tutor("tutor-1", "upcoming")) == 1


class TestCancelLesson:
    def test_cancel_drops_enrollments_and_reports_affected(
        self, lifecycle: LessonLifecycle, store: SchedulingStore
    ):
        tutor = create_tutor(store)
        lesson = create_lesson(store, tutor, NOW + timedelta(days=1), tutees=["a", "b"])

        result = lifecycle.cancel_lesson(lesson.id)

        assert result.lesson.status == LessonStatus.CANCELED.value
        assert sorted(result.affected_tutee_ids) == ["a", "b"]
        assert result.lesson.enrollments == []
        assert load_enrollment(store, lesson.id, "a") is None
        assert load_lesson(store, lesson.id).status == "canceled"

    def test_cancel_without_enrollments(self, lifecycle: LessonLifecycle, store: SchedulingStore):
        lesson = create_lesson(store, create_tutor(store), NOW + timedelta(days=1))
        assert lifecycle.cancel_lesson(lesson.id).affected_tutee_ids == []

    @pytest.mark.parametrize(
        "status", [LessonStatus.CANCELED, LessonStatus.COMPLETED, LessonStatus.APPROVED]
    )
    def test_only_open_lessons_can_be_canceled(
        self, lifecycle: LessonLifecycle, store: SchedulingStore, status
    ):
        lesson = create_lesson(store, create_tutor(store), NOW + timedelta(days=1), status=status)

        with pytest.raises(InvalidStatusUpdateException):
            lifecycle.cancel_lesson(lesson.id)

    def test_missing_lesson(self, lifecycle: LessonLifecycle):
        with pytest.raises(NotFoundException) as exc_info:
            lifecycle.cancel_lesson("01HZZZZZZZZZZZZZZZZZZZZZZZ")
        assert exc_info.value.message == "Lesson not found"

    def test_storage_failure_rolls_back_with_cancel_error(
        self, lifecycle: LessonLifecycle, store: SchedulingStore, monkeypatch
    ):
        lesson = create_lesson(store, create_tutor(store), NOW + timedelta(days=1), tutees=["a"])

        def broken(self, lesson):
            raise RepositoryException("disk full")

        monkeypatch.setattr(EnrollmentRepository, "delete_for_lesson", broken)

        with pytest.raises(StorageException) as exc_info:
            lifecycle.cancel_lesson(lesson.id)

        assert exc_info.value.code is ErrorCode.CANCEL_ERROR
        assert exc_info.value.origin == "LessonLifecycle:cancel_lesson"
        assert isinstance(exc_info.value.__cause__, RepositoryException)
        reloaded = load_lesson(store, lesson.id)
        assert reloaded.status == "created"
        assert reloaded.enrolled_tutee_ids == ["a"]


class TestEditLesson:
    def test_only_given_fields_change(self, lifecycle: LessonLifecycle, store: SchedulingStore):
        lesson = create_lesson(store, create_tutor(store), NOW + timedelta(days=1))

        edited = lifecycle.edit_lesson(lesson.id, format="in-person", location_or_link="Room 4")

        assert edited.format == "in-person"
        assert edited.location_or_link == "Room 4"
        assert edited.description == "Algebra basics"

    def test_closed_lessons_cannot_be_edited(
        self, lifecycle: LessonLifecycle, store: SchedulingStore
    ):
        lesson = create_lesson(
            store, create_tutor(store), NOW - timedelta(days=1), status=LessonStatus.COMPLETED
        )

        with pytest.raises(InvalidStatusUpdateException) as exc_info:
            lifecycle.edit_lesson(lesson.id, description="new")

        assert exc_info.value.details["current_status"] == "completed"
        assert load_lesson(store, lesson.id).description == "Algebra basics"


class TestUploadLessonReport:
    def test_anyone_present_completes_the_lesson(
        self, lifecycle: LessonLifecycle, store: SchedulingStore
    ):
        lesson = create_lesson(store, create_tutor(store), NOW - timedelta(hours=2), tutees=["a", "b"])

        reported = lifecycle.upload_lesson_report(lesson.id, "Went well", {"a": True, "b": False})

        assert reported.status == LessonStatus.COMPLETED.value
        assert reported.summary == "Went well"
        assert load_enrollment(store, lesson.id, "a").presence is True
        assert load_enrollment(store, lesson.id, "b").presence is False

    def test_nobody_present_marks_unattended(
        self, lifecycle: LessonLifecycle, store: SchedulingStore
    ):
        lesson = create_lesson(store, create_tutor(store), NOW - timedelta(hours=2), tutees=["a", "b"])

        reported = lifecycle.upload_lesson_report(lesson.id, "No show", {"a": False, "b": False})

        assert reported.status == LessonStatus.UNATTENDED.value

    def test_unknown_tutee_is_reported_first(
        self, lifecycle: LessonLifecycle, store: SchedulingStore
    ):
        lesson = create_lesson(store, create_tutor(store), NOW - timedelta(hours=2), tutees=["a", "b"])

        with pytest.raises(ValidationException) as exc_info:
            lifecycle.upload_lesson_report(lesson.id, "x", {"a": True, "stranger": True})

        assert exc_info.value.code is ErrorCode.INVALID_TUTEE

    def test_missing_presence_info(self, lifecycle: LessonLifecycle, store: SchedulingStore):
        lesson = create_lesson(store, create_tutor(store), NOW - timedelta(hours=2), tutees=["a", "b"])

        with pytest.raises(ValidationException) as exc_info:
            lifecycle.upload_lesson_report(lesson.id, "x", {"a": True})

        assert exc_info.value.code is ErrorCode.MISSING_PRESENCE_INFO
        reloaded = load_lesson(store, lesson.id)
        assert reloaded.status == "created"
        assert reloaded.summary is None
        assert load_enrollment(store, lesson.id, "a").presence is None

    def test_report_only_once(self, lifecycle: LessonLifecycle, store: SchedulingStore):
        lesson = create_lesson(store, create_tutor(store), NOW - timedelta(hours=2), tutees=["a"])
        lifecycle.upload_lesson_report(lesson.id, "first", {"a": True})

        with pytest.raises(InvalidStatusUpdateException):
            lifecycle.upload_lesson_report(lesson.id, "second", {"a": True})


class TestVerdict:
    @pytest.mark.parametrize(
        "start,approved,expected",
        [
            (LessonStatus.COMPLETED, True, "approved"),
            (LessonStatus.COMPLETED, False, "notapproved"),
            (LessonStatus.UNATTENDED, True, "approved"),
            (LessonStatus.UNATTENDED, False, "notapproved"),
        ],
    )
    def test_verdict_from_reported_lessons(
        self, lifecycle: LessonLifecycle, store: SchedulingStore, start, approved, expected
    ):
        lesson = create_lesson(store, create_tutor(store), NOW - timedelta(days=1), status=start)
        assert lifecycle.update_lesson_verdict(lesson.id, approved).status == expected

    @pytest.mark.parametrize(
        "start", [LessonStatus.CREATED, LessonStatus.CANCELED, LessonStatus.APPROVED]
    )
    def test_verdict_from_other_statuses_is_refused(
        self, lifecycle: LessonLifecycle, store: SchedulingStore, start
    ):
        lesson = create_lesson(store, create_tutor(store), NOW - timedelta(days=1), status=start)

        with pytest.raises(InvalidStatusUpdateException):
            lifecycle.update_lesson_verdict(lesson.id, True)

        assert load_lesson(store, lesson.id).status == start.value

    def test_missing_lesson(self, lifecycle: LessonLifecycle):
        with pytest.raises(NotFoundException) as exc_info:
            lifecycle.update_lesson_verdict("missing", True)
        assert exc_info.value.code is ErrorCode.NOT_FOUND
        assert exc_info.value.message == "Lesson not found"


class TestListings:
    def test_tutor_categories(self, lifecycle: LessonLifecycle, store: SchedulingStore):
        tutor = create_tutor(store, user_id="tutor-1")
        upcoming = create_lesson(store, tutor, NOW + timedelta(days=1), tutees=["a"])
        pending = create_lesson(store, tutor, NOW - timedelta(hours=3), tutees=["b"])
        create_lesson(store, tutor, NOW - timedelta(hours=3, minutes=5))

        listed = lifecycle.get_lessons_of_tutor("tutor-1", "upcoming")
        assert [l.id for l in listed] == [upcoming.id]
        assert listed[0].enrollments[0].tutee_full_name == "Tutee a"

        assert [l.id for l in lifecycle.get_lessons_of_tutor("tutor-1", "summaryPending")] == [
            pending.id
        ]

    def test_tutee_categories(self, lifecycle: LessonLifecycle, store: SchedulingStore):
        tutor = create_tutor(store)
        upcoming = create_lesson(store, tutor, NOW + timedelta(days=1), tutees=["me"])
        review = create_lesson(store, tutor, NOW - timedelta(days=1), tutees=["me"])

        assert [l.id for l in lifecycle.get_lessons_of_tutee("me", "upcoming")] == [upcoming.id]
        assert [l.id for l in lifecycle.get_lessons_of_tutee("me", "reviewPending")] == [review.id]

    @pytest.mark.parametrize("category", ["reviewPending", "past", ""])
    def test_invalid_tutor_category(self, lifecycle: LessonLifecycle, category):
        with pytest.raises(ValidationException) as exc_info:
            lifecycle.get_lessons_of_tutor("tutor-1", category)
        assert exc_info.value.code is ErrorCode.INVALID_LESSON_CATEGORY

    def test_invalid_tutee_category(self, lifecycle: LessonLifecycle):
        with pytest.raises(ValidationException) as exc_info:
            lifecycle.get_lessons_of_tutee("me", "summaryPending")
        assert exc_info.value.code is ErrorCode.INVALID_LESSON_CATEGORY

    def test_search_and_admin_views(self, lifecycle: LessonLifecycle, store: SchedulingStore):
        tutor = create_tutor(store, user_id="tutor-1")
        open_lesson = create_lesson(store, tutor, NOW + timedelta(days=1))
        done = create_lesson(store, tutor, NOW - timedelta(days=1), status=LessonStatus.COMPLETED)
        create_lesson(store, tutor, NOW - timedelta(days=2), status=LessonStatus.APPROVED)

        assert [l.id for l in lifecycle.search_available_lessons("Math", "10", "A", "me")] == [
            open_lesson.id
        ]
        assert [l.id for l in lifecycle.get_verdict_pending_lessons()] == [done.id]
        assert lifecycle.get_amount_of_approved_lessons("tutor-1") == 1
        assert lifecycle.get_amount_of_approved_lessons("unknown") == 0


def test_operations_are_measured(lifecycle: LessonLifecycle):
    _create(lifecycle, NOW + timedelta(days=1))
    with pytest.raises(ConflictException):
        _create(lifecycle, NOW + timedelta(days=1))

    metrics = lifecycle.get_metrics()["create_lesson"]
    assert metrics["count"] == 2
    assert metrics["success_count"] == 1
    assert metrics["failure_count"] == 1
    assert metrics["success_rate"] == 0.5


class TestTransactionTimeouts:
    @pytest.fixture
    def applied(self, monkeypatch):
        seen = []

        def record(uow, lock_timeout_ms, statement_timeout_ms):
            seen.append((lock_timeout_ms, statement_timeout_ms))

        monkeypatch.setattr(UnitOfWork, "apply_timeouts", record)
        return seen

    def test_caller_timeout_bounds_the_transaction(
        self, lifecycle: LessonLifecycle, store: SchedulingStore, applied
    ):
        lesson = create_lesson(store, create_tutor(store), NOW + timedelta(days=1))
        applied.clear()

        lifecycle.cancel_lesson(lesson.id, timeout_ms=250)

        assert applied == [(250, 250)]

    def test_store_settings_apply_by_default(
        self, lifecycle: LessonLifecycle, store: SchedulingStore, applied
    ):
        lesson = create_lesson(
            store, create_tutor(store), NOW - timedelta(days=1), tutees=["a"]
        )
        applied.clear()

        lifecycle.upload_lesson_report(lesson.id, "done", {"a": True})

        assert applied == [(settings.lock_timeout_ms, settings.statement_timeout_ms)]
