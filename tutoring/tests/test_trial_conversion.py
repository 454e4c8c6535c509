"""Tests for trial-to-regular conversion."""

from unittest.mock import AsyncMock, patch

import pytest

from tutoring.conversion import AUDIT_ACTION, TrialConversionService
from tutoring.enums import ClassStatus, NotificationType, UserRole
from tutoring.notifications.events import EventNotifier


@pytest.fixture
def trial_store(store):
    store.add_profile("student-1", "Sara", "Ali", is_trial=True)
    store.add_profile("admin-1", "Admin", "One", role=UserRole.admin)
    store.add_session(is_trial=True, status=ClassStatus.completed)
    return store


class TestConvertTrialIfEligible:
    @pytest.mark.asyncio
    async def test_converts_student_after_completed_trial(self, trial_store, dispatcher):
        service = TrialConversionService(trial_store, EventNotifier(trial_store, dispatcher))

        converted = await service.convert_trial_if_eligible("session-1")

        assert converted is True
        profile = trial_store.profiles["student-1"]
        assert profile["is_trial"] is False
        assert profile["trial_completed"] is True

    @pytest.mark.asyncio
    async def test_notifies_student_and_admins(self, trial_store, dispatcher):
        service = TrialConversionService(trial_store, EventNotifier(trial_store, dispatcher))

        await service.convert_trial_if_eligible("session-1")

        assert len(trial_store.notifications_for("student-1", NotificationType.conversion_complete)) == 1
        admin_notes = trial_store.notifications_for("admin-1", NotificationType.student_converted)
        assert len(admin_notes) == 1
        assert "Sara Ali" in admin_notes[0]["message"]

    @pytest.mark.asyncio
    async def test_writes_audit_log(self, trial_store):
        service = TrialConversionService(trial_store)

        await service.convert_trial_if_eligible("session-1")

        assert len(trial_store.audit_logs) == 1
        entry = trial_store.audit_logs[0]
        assert entry["action"] == AUDIT_ACTION
        assert entry["entity_id"] == "student-1"
        assert entry["old_value"] == {"is_trial": True, "trial_completed": False}
        assert entry["new_value"]["trial_completed"] is True

    @pytest.mark.asyncio
    async def test_second_call_does_not_convert_again(self, trial_store):
        service = TrialConversionService(trial_store)

        assert await service.convert_trial_if_eligible("session-1") is True
        assert await service.convert_trial_if_eligible("session-1") is False
        assert len(trial_store.audit_logs) == 1

    @pytest.mark.asyncio
    async def test_ignores_sessions_that_are_not_completed(self, store):
        store.add_profile("student-1", is_trial=True)
        store.add_session(is_trial=True, status=ClassStatus.in_progress)
        service = TrialConversionService(store)

        assert await service.convert_trial_if_eligible("session-1") is False
        assert store.profiles["student-1"]["is_trial"] is True

    @pytest.mark.asyncio
    async def test_ignores_regular_sessions(self, store):
        store.add_profile("student-1", is_trial=True)
        store.add_session(is_trial=False, status=ClassStatus.completed)
        service = TrialConversionService(store)

        assert await service.convert_trial_if_eligible("session-1") is False

    @pytest.mark.asyncio
    async def test_unknown_session_returns_false(self, store):
        service = TrialConversionService(store)
        assert await service.convert_trial_if_eligible("missing") is False

    @pytest.mark.asyncio
    async def test_lost_race_is_not_a_conversion(self, trial_store):
        """Conditional profile update matched nothing: someone else converted."""
        service = TrialConversionService(trial_store)

        with patch.object(trial_store, "mark_trial_converted", AsyncMock(return_value=False)):
            converted = await service.convert_trial_if_eligible("session-1")

        assert converted is False
        assert trial_store.audit_logs == []

    @pytest.mark.asyncio
    async def test_audit_log_failure_does_not_undo_conversion(self, trial_store):
        trial_store.fail_on.add("add_audit_log")
        service = TrialConversionService(trial_store)

        with patch("tutoring.conversion.sentry_sdk"):
            converted = await service.convert_trial_if_eligible("session-1")

        assert converted is True
        assert trial_store.profiles["student-1"]["trial_completed"] is True


class TestProcessCompletedTrials:
    @pytest.mark.asyncio
    async def test_converts_every_eligible_student(self, store):
        store.add_profile("student-1", is_trial=True)
        store.add_profile("student-2", is_trial=True)
        store.add_profile("student-3", is_trial=False, trial_completed=True)
        store.add_session("a", student_id="student-1", is_trial=True, status=ClassStatus.completed)
        store.add_session("b", student_id="student-2", is_trial=True, status=ClassStatus.completed)
        store.add_session("c", student_id="student-3", is_trial=True, status=ClassStatus.completed)
        service = TrialConversionService(store)

        assert await service.process_completed_trials() == 2

    @pytest.mark.asyncio
    async def test_read_failure_returns_zero(self, store):
        store.fail_on.add("get_completed_trial_session_ids")
        service = TrialConversionService(store)

        assert await service.process_completed_trials() == 0
