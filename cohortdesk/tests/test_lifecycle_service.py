"""
Integration Tests for the Lifecycle Service

Creation, transitions with their side effects, archive/restore,
duplication and guarded deletion.
"""
import pytest
from sqlalchemy.exc import IntegrityError

from cohortdesk.errors import GuardError, NotFoundError, ValidationError
from cohortdesk.orm.audit_log import AuditAction, EntityType
from cohortdesk.orm.cohort import CohortStatus
from cohortdesk.orm.mentor import Mentor, MentorStatus, AvailabilityStatus
from cohortdesk.orm.program import ProgramStatus
from cohortdesk.orm.student import StudentStatus
from cohortdesk.tests.conftest import cohort_data, mentor_data, program_data, student_data


class TestCreation:

    @pytest.mark.asyncio
    async def test_program_starts_draft(self, ops):
        program = await ops.create_program(program_data())
        assert program.status == ProgramStatus.DRAFT
        assert program.cohort_count == 0

    @pytest.mark.asyncio
    async def test_cohort_counts_toward_program(self, ops, program):
        await ops.create_cohort(cohort_data(program.id))
        assert (await ops.get_entity("PROGRAM", program.id)).cohort_count == 1

    @pytest.mark.asyncio
    async def test_cohort_for_missing_program(self, ops):
        with pytest.raises(NotFoundError):
            await ops.create_cohort(cohort_data(999))

    @pytest.mark.asyncio
    async def test_invalid_cohort_input(self, ops, program):
        with pytest.raises(ValidationError) as exc:
            await ops.create_cohort(cohort_data(program.id, capacity=0))
        fields = [err["field"] for err in exc.value.details["errors"]]
        assert "capacity" in fields

    @pytest.mark.asyncio
    async def test_cohort_dates_checked(self, ops, program):
        data = cohort_data(program.id)
        data["end_date"] = data["start_date"]
        with pytest.raises(ValidationError):
            await ops.create_cohort(data)

    @pytest.mark.asyncio
    async def test_mentor_default_capacity_from_flags(self, ops, flags):
        flags.DEFAULT_MAX_COHORTS = 5
        mentor = await ops.create_mentor(mentor_data())
        assert mentor.max_cohorts == 5
        assert mentor.status == MentorStatus.ACTIVE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("configured, expected", [(0, 1), (-4, 1), (50, 10)])
    async def test_mentor_default_capacity_clamped(self, ops, flags, configured, expected):
        flags.DEFAULT_MAX_COHORTS = configured
        mentor = await ops.create_mentor(mentor_data())
        assert mentor.max_cohorts == expected

    @pytest.mark.asyncio
    async def test_max_cohorts_range_checked_by_database(self, db_session):
        db_session.add(Mentor(name="Raw Row", email="raw@test.com", max_cohorts=0))
        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_mentor_email_unique(self, ops, mentor):
        with pytest.raises(ValidationError):
            await ops.create_mentor(mentor_data(email="MENTOR@test.com"))

    @pytest.mark.asyncio
    async def test_mentor_with_initial_cohorts(self, ops, program):
        first = await ops.create_cohort(cohort_data(program.id, name="A"))
        second = await ops.create_cohort(cohort_data(program.id, name="B"))

        mentor = await ops.create_mentor(mentor_data(cohort_ids=[first.id, second.id]))

        assert mentor.assigned_cohort_ids == [first.id, second.id]
        assert (await ops.get_entity("COHORT", first.id)).mentor_ids == [mentor.id]

    @pytest.mark.asyncio
    async def test_mentor_creation_is_atomic(self, ops, program):
        open_cohort = await ops.create_cohort(cohort_data(program.id, name="Open"))
        closed = await ops.create_cohort(cohort_data(program.id, name="Closed"))
        await ops.archive("COHORT", closed.id)

        with pytest.raises(GuardError) as exc:
            await ops.create_mentor(mentor_data(cohort_ids=[open_cohort.id, closed.id]))
        assert exc.value.code == "COHORT_NOT_ASSIGNABLE"

        assert await ops.list_entities("MENTOR") == []
        assert (await ops.get_entity("COHORT", open_cohort.id)).mentor_ids == []


class TestTransitions:

    @pytest.mark.asyncio
    async def test_unknown_status(self, ops, program):
        with pytest.raises(ValidationError):
            await ops.update_status("PROGRAM", program.id, "PAUSED")

    @pytest.mark.asyncio
    async def test_program_transition_audited(self, ops, program):
        updated = await ops.update_status("program", program.id, "active")
        assert updated.status == ProgramStatus.ACTIVE

        trail = await ops.audit_trail("PROGRAM", program.id)
        assert trail[-1].action == AuditAction.STATUS_CHANGED
        assert trail[-1].details == {"from": "DRAFT", "to": "ACTIVE"}

    @pytest.mark.asyncio
    async def test_invalid_program_transition(self, ops, program):
        await ops.archive("PROGRAM", program.id)
        with pytest.raises(GuardError) as exc:
            await ops.update_status("PROGRAM", program.id, "ACTIVE")
        assert exc.value.code == "INVALID_TRANSITION"

    @pytest.mark.asyncio
    async def test_cohort_forward_path(self, ops, cohort):
        active = await ops.update_status("COHORT", cohort.id, "ACTIVE")
        assert active.status == CohortStatus.ACTIVE
        done = await ops.lifecycle.complete_cohort(cohort.id)
        assert done.status == CohortStatus.COMPLETED

        with pytest.raises(GuardError) as exc:
            await ops.archive("COHORT", cohort.id)
        assert exc.value.code == "COHORT_ALREADY_CLOSED"

    @pytest.mark.asyncio
    async def test_mentor_deactivation_cascades(self, ops, program):
        mentor = await ops.create_mentor(mentor_data())
        cohort_ids = []
        for i in range(3):
            cohort = await ops.create_cohort(cohort_data(program.id, name=f"Batch {i}"))
            await ops.assign_mentor_to_cohort(mentor.id, cohort.id)
            cohort_ids.append(cohort.id)

        updated = await ops.update_status("MENTOR", mentor.id, "INACTIVE")

        assert updated.status == MentorStatus.INACTIVE
        assert updated.assigned_cohort_ids == []
        for cohort_id in cohort_ids:
            assert mentor.id not in (await ops.get_entity("COHORT", cohort_id)).mentor_ids

        trail = await ops.audit_trail("MENTOR", mentor.id)
        status_entry = [e for e in trail if e.action == AuditAction.STATUS_CHANGED][-1]
        assert status_entry.details["metadata"]["unlinked_cohort_ids"] == cohort_ids

    @pytest.mark.asyncio
    async def test_reactivated_mentor_starts_empty(self, ops, mentor, cohort):
        await ops.assign_mentor_to_cohort(mentor.id, cohort.id)
        await ops.update_status("MENTOR", mentor.id, "INACTIVE")
        reactivated = await ops.update_status("MENTOR", mentor.id, "ACTIVE")
        assert reactivated.assigned_cohort_ids == []

    @pytest.mark.asyncio
    async def test_self_transition_rejected(self, ops, mentor):
        with pytest.raises(GuardError) as exc:
            await ops.update_status("MENTOR", mentor.id, "ACTIVE")
        assert exc.value.code == "SELF_TRANSITION"


class TestStudentTransitions:

    @pytest.mark.asyncio
    async def test_flag_with_reason_then_clear(self, ops, student):
        await ops.update_status("STUDENT", student.id, "ACTIVE")
        flagged = await ops.update_status("STUDENT", student.id, "FLAGGED", {"reason": "  missed 3 sessions "})
        assert flagged.flag_reason == "missed 3 sessions"

        restored = await ops.update_status("STUDENT", student.id, "ACTIVE")
        assert restored.flag_reason is None

    @pytest.mark.asyncio
    async def test_drop_without_confirmation_flag(self, ops, student):
        dropped = await ops.update_status("STUDENT", student.id, "DROPPED", {"reason": "moved"})
        assert dropped.status == StudentStatus.DROPPED
        assert dropped.drop_reason == "moved"

    @pytest.mark.asyncio
    async def test_drop_confirmation_when_required(self, ops, flags, student):
        flags.REQUIRE_DROP_CONFIRMATION = True
        with pytest.raises(GuardError) as exc:
            await ops.update_status("STUDENT", student.id, "DROPPED", {"reason": "moved"})
        assert exc.value.code == "CONFIRMATION_REQUIRED"
        assert (await ops.get_entity("STUDENT", student.id)).status == StudentStatus.INVITED

        dropped = await ops.update_status("STUDENT", student.id, "DROPPED", {"reason": "moved", "confirmed": True})
        assert dropped.status == StudentStatus.DROPPED
        assert dropped.drop_reason == "moved"
        assert dropped.cohort_id == student.cohort_id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", ["INVITED", "ACTIVE", "FLAGGED", "COMPLETED"])
    async def test_dropped_is_final(self, ops, student, target):
        await ops.update_status("STUDENT", student.id, "DROPPED", {"confirmed": True})
        with pytest.raises(GuardError) as exc:
            await ops.update_status("STUDENT", student.id, target, {"confirmed": True})
        assert exc.value.code == "STUDENT_TERMINAL"

    @pytest.mark.asyncio
    async def test_non_text_reason(self, ops, student):
        with pytest.raises(ValidationError):
            await ops.update_status("STUDENT", student.id, "DROPPED", {"reason": 42, "confirmed": True})


class TestArchiveRestore:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prior", ["UPCOMING", "ACTIVE"])
    async def test_cohort_restores_prior_status(self, ops, program, prior):
        cohort = await ops.create_cohort(cohort_data(program.id, status=prior))

        archived = await ops.archive("COHORT", cohort.id)
        assert archived.status == CohortStatus.ARCHIVED
        assert archived.status_before_archive == CohortStatus(prior)

        restored = await ops.restore("COHORT", cohort.id)
        assert restored.status == CohortStatus(prior)
        assert restored.status_before_archive is None

    @pytest.mark.asyncio
    async def test_restore_non_archived_cohort(self, ops, cohort):
        with pytest.raises(GuardError) as exc:
            await ops.restore("COHORT", cohort.id)
        assert exc.value.code == "COHORT_NOT_ARCHIVED"

    @pytest.mark.asyncio
    async def test_program_restores_to_draft(self, ops, program):
        await ops.update_status("PROGRAM", program.id, "ACTIVE")
        await ops.archive("PROGRAM", program.id)
        restored = await ops.restore("PROGRAM", program.id)
        assert restored.status == ProgramStatus.DRAFT

    @pytest.mark.asyncio
    async def test_students_cannot_be_archived(self, ops, student):
        with pytest.raises(ValidationError):
            await ops.archive("STUDENT", student.id)


class TestDuplication:

    @pytest.mark.asyncio
    async def test_duplicate_cohort(self, ops, cohort, mentor, student):
        await ops.assign_mentor_to_cohort(mentor.id, cohort.id)
        await ops.update_status("COHORT", cohort.id, "ACTIVE")

        copy = await ops.duplicate_cohort(cohort.id)

        assert copy.id != cohort.id
        assert copy.name == "Batch 1 (Copy)"
        assert copy.status == CohortStatus.UPCOMING
        assert copy.capacity == cohort.capacity
        assert copy.mentor_ids == []
        assert copy.student_count == 0
        assert (await ops.get_entity("PROGRAM", cohort.program_id)).cohort_count == 2

    @pytest.mark.asyncio
    async def test_duplicate_program(self, ops, program, cohort):
        await ops.update_status("PROGRAM", program.id, "ACTIVE")
        copy = await ops.duplicate_program(program.id)
        assert copy.status == ProgramStatus.DRAFT
        assert copy.cohort_count == 0


class TestMentorSettings:

    @pytest.mark.asyncio
    async def test_capacity_cannot_drop_below_assignments(self, ops, program):
        mentor = await ops.create_mentor(mentor_data(max_cohorts=3))
        for i in range(2):
            cohort = await ops.create_cohort(cohort_data(program.id, name=f"Batch {i}"))
            await ops.assign_mentor_to_cohort(mentor.id, cohort.id)

        with pytest.raises(GuardError) as exc:
            await ops.update_mentor_capacity(mentor.id, 1)
        assert exc.value.code == "MENTOR_CAPACITY_BELOW_ASSIGNMENTS"

        updated = await ops.update_mentor_capacity(mentor.id, 2)
        assert updated.max_cohorts == 2

    @pytest.mark.asyncio
    async def test_capacity_bounds(self, ops, mentor):
        with pytest.raises(ValidationError):
            await ops.update_mentor_capacity(mentor.id, 11)

    @pytest.mark.asyncio
    async def test_availability(self, ops, mentor):
        updated = await ops.update_mentor_availability(mentor.id, "LIMITED")
        assert updated.availability_status == AvailabilityStatus.LIMITED


class TestDeletion:

    @pytest.mark.asyncio
    async def test_cohort_with_student_cannot_be_deleted(self, ops, cohort, student):
        with pytest.raises(GuardError) as exc:
            await ops.delete_entity("COHORT", cohort.id)
        assert exc.value.code == "COHORT_HAS_STUDENTS"

        still_there = await ops.get_entity("COHORT", cohort.id)
        assert still_there.student_count == 1

    @pytest.mark.asyncio
    async def test_empty_cohort_delete_unlinks_mentors(self, ops, cohort, mentor):
        await ops.assign_mentor_to_cohort(mentor.id, cohort.id)

        result = await ops.delete_entity("COHORT", cohort.id)

        assert result.success is True
        assert result.entity_type == EntityType.COHORT
        assert (await ops.get_entity("MENTOR", mentor.id)).assigned_cohort_ids == []
        with pytest.raises(NotFoundError):
            await ops.get_entity("COHORT", cohort.id)

    @pytest.mark.asyncio
    async def test_mentor_with_assignments_cannot_be_deleted(self, ops, cohort, mentor):
        await ops.assign_mentor_to_cohort(mentor.id, cohort.id)
        with pytest.raises(GuardError) as exc:
            await ops.delete_entity("MENTOR", mentor.id)
        assert exc.value.code == "MENTOR_HAS_ASSIGNMENTS"

    @pytest.mark.asyncio
    async def test_deleting_mentor_unpairs_students(self, ops, cohort, mentor):
        await ops.assign_mentor_to_cohort(mentor.id, cohort.id)
        student = await ops.create_student(student_data(cohort.id, mentor_id=mentor.id))
        await ops.update_status("MENTOR", mentor.id, "INACTIVE")

        await ops.delete_entity("MENTOR", mentor.id)

        assert (await ops.get_entity("STUDENT", student.id)).mentor_id is None

    @pytest.mark.asyncio
    async def test_program_delete_rules(self, ops, program, cohort):
        with pytest.raises(GuardError) as exc:
            await ops.delete_entity("PROGRAM", program.id)
        assert exc.value.code == "PROGRAM_HAS_COHORTS"

        await ops.delete_entity("COHORT", cohort.id)
        await ops.update_status("PROGRAM", program.id, "ACTIVE")
        assert (await ops.delete_entity("PROGRAM", program.id)).success

        with pytest.raises(NotFoundError):
            await ops.get_entity("PROGRAM", program.id)

    @pytest.mark.asyncio
    async def test_student_delete_removes_notes(self, ops, cohort, student):
        await ops.add_student_note(student.id, "Asha", "Good start")

        await ops.delete_entity("STUDENT", student.id)

        assert (await ops.get_entity("COHORT", cohort.id)).student_count == 0
        with pytest.raises(NotFoundError):
            await ops.list_student_notes(student.id)

    @pytest.mark.asyncio
    async def test_delete_missing(self, ops):
        with pytest.raises(NotFoundError):
            await ops.delete_entity("MENTOR", 404)
