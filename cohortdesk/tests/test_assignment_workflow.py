"""
Integration Tests for the two-phase Assignment Workflow

Selection from either side, authoritative confirmation, removal and the
eligibility lists.
"""
from datetime import date

import pytest

from cohortdesk.errors import GuardError, NotFoundError
from cohortdesk.orm.audit_log import EntityType
from cohortdesk.tests.conftest import cohort_data, mentor_data


class TestCapacityScenario:

    @pytest.mark.asyncio
    async def test_fourth_cohort_rejected_at_default_capacity(self, ops, program, mentor):
        cohorts = [
            await ops.create_cohort(cohort_data(program.id, name=f"Batch {i}"))
            for i in range(4)
        ]
        for cohort in cohorts[:3]:
            await ops.assign_mentor_to_cohort(mentor.id, cohort.id)

        with pytest.raises(GuardError) as exc:
            await ops.assign_mentor_to_cohort(mentor.id, cohorts[3].id)
        assert exc.value.code == "MENTOR_AT_CAPACITY"

        reloaded = await ops.get_entity("MENTOR", mentor.id)
        assert reloaded.assigned_cohort_ids == [c.id for c in cohorts[:3]]
        assert (await ops.get_entity("COHORT", cohorts[3].id)).mentor_ids == []

    @pytest.mark.asyncio
    async def test_third_cohort_rejected_at_max_two(self, ops, program):
        mentor = await ops.create_mentor(mentor_data(email="two@test.com", max_cohorts=2))
        cohorts = [
            await ops.create_cohort(cohort_data(program.id, name=f"Batch {i}"))
            for i in range(3)
        ]
        await ops.assign_mentor_to_cohort(mentor.id, cohorts[0].id)
        await ops.assign_mentor_to_cohort(mentor.id, cohorts[1].id)

        with pytest.raises(GuardError) as exc:
            await ops.assign_mentor_to_cohort(mentor.id, cohorts[2].id)
        assert exc.value.code == "MENTOR_AT_CAPACITY"

        reloaded = await ops.get_entity("MENTOR", mentor.id)
        assert len(reloaded.assigned_cohort_ids) == 2
        assert len(reloaded.assigned_cohort_ids) <= reloaded.max_cohorts

    @pytest.mark.asyncio
    async def test_raised_capacity_allows_more(self, ops, program, mentor):
        cohorts = [
            await ops.create_cohort(cohort_data(program.id, name=f"Batch {i}"))
            for i in range(4)
        ]
        for cohort in cohorts[:3]:
            await ops.assign_mentor_to_cohort(mentor.id, cohort.id)

        await ops.update_mentor_capacity(mentor.id, 4)
        result = await ops.assign_mentor_to_cohort(mentor.id, cohorts[3].id)
        assert len(result.mentor.assigned_cohort_ids) == 4


class TestTwoPhase:

    @pytest.mark.asyncio
    async def test_select_then_confirm_from_mentor_side(self, ops, mentor, cohort):
        selection = await ops.select_cohort_for_mentor(mentor.id, cohort.id)
        assert selection.initiated_from == EntityType.MENTOR
        assert selection.eligible is True
        assert selection.reason is None

        # Selection alone stores nothing
        assert (await ops.get_entity("COHORT", cohort.id)).mentor_ids == []

        result = await ops.confirm_assignment(selection)
        assert result.cohort.mentor_ids == [mentor.id]
        assert result.mentor.assigned_cohort_ids == [cohort.id]

    @pytest.mark.asyncio
    async def test_select_from_cohort_side_reports_ineligible(self, ops, mentor, cohort):
        await ops.update_status("MENTOR", mentor.id, "INACTIVE")

        selection = await ops.select_mentor_for_cohort(cohort.id, mentor.id)

        assert selection.initiated_from == EntityType.COHORT
        assert selection.eligible is False
        assert selection.reason == "MENTOR_INACTIVE"
        assert selection.message

    @pytest.mark.asyncio
    async def test_confirm_rechecks_guards(self, ops, program):
        mentor = await ops.create_mentor(mentor_data(email="solo@test.com", max_cohorts=1))
        first = await ops.create_cohort(cohort_data(program.id, name="A"))
        second = await ops.create_cohort(cohort_data(program.id, name="B"))

        stale = await ops.select_cohort_for_mentor(mentor.id, second.id)
        assert stale.eligible is True

        await ops.assign_mentor_to_cohort(mentor.id, first.id)

        with pytest.raises(GuardError) as exc:
            await ops.confirm_assignment(stale)
        assert exc.value.code == "MENTOR_AT_CAPACITY"

    @pytest.mark.asyncio
    async def test_confirm_accepts_plain_dict(self, ops, mentor, cohort):
        result = await ops.confirm_assignment({
            "initiated_from": "COHORT",
            "mentor_id": mentor.id,
            "cohort_id": cohort.id,
            "eligible": True,
        })
        assert result.cohort.mentor_ids == [mentor.id]

    @pytest.mark.asyncio
    async def test_select_missing_entity(self, ops, mentor):
        with pytest.raises(NotFoundError):
            await ops.select_cohort_for_mentor(mentor.id, 999)


class TestAssignAndRemove:

    @pytest.mark.asyncio
    async def test_duplicate_assignment(self, ops, mentor, cohort):
        await ops.assign_mentor_to_cohort(mentor.id, cohort.id)
        with pytest.raises(GuardError) as exc:
            await ops.assign_mentor_to_cohort(mentor.id, cohort.id)
        assert exc.value.code == "MENTOR_ALREADY_ASSIGNED"

    @pytest.mark.asyncio
    async def test_archived_cohort_not_assignable(self, ops, mentor, cohort):
        await ops.archive("COHORT", cohort.id)
        with pytest.raises(GuardError) as exc:
            await ops.assign_mentor_to_cohort(mentor.id, cohort.id)
        assert exc.value.code == "COHORT_NOT_ASSIGNABLE"

    @pytest.mark.asyncio
    async def test_remove_twice(self, ops, mentor, cohort):
        await ops.assign_mentor_to_cohort(mentor.id, cohort.id)

        result = await ops.remove_mentor_from_cohort(mentor.id, cohort.id)
        assert result.mentor.assigned_cohort_ids == []
        assert result.cohort.mentor_ids == []

        with pytest.raises(GuardError) as exc:
            await ops.remove_mentor_from_cohort(mentor.id, cohort.id)
        assert exc.value.code == "MENTOR_NOT_ASSIGNED"

        assert (await ops.get_entity("MENTOR", mentor.id)).assigned_cohort_ids == []
        assert (await ops.get_entity("COHORT", cohort.id)).mentor_ids == []

    @pytest.mark.asyncio
    async def test_remove_from_completed_cohort(self, ops, mentor, cohort):
        await ops.assign_mentor_to_cohort(mentor.id, cohort.id)
        await ops.update_status("COHORT", cohort.id, "ACTIVE")
        await ops.update_status("COHORT", cohort.id, "COMPLETED")

        result = await ops.remove_mentor_from_cohort(mentor.id, cohort.id)
        assert result.cohort.mentor_ids == []


class TestEligibility:

    @pytest.mark.asyncio
    async def test_eligible_mentors(self, ops, cohort):
        free = await ops.create_mentor(mentor_data(email="free@test.com"))
        assigned = await ops.create_mentor(mentor_data(email="assigned@test.com"))
        inactive = await ops.create_mentor(mentor_data(email="inactive@test.com"))
        await ops.assign_mentor_to_cohort(assigned.id, cohort.id)
        await ops.update_status("MENTOR", inactive.id, "INACTIVE")

        eligible = await ops.list_eligible_mentors_for_cohort(cohort.id)
        assert [m.id for m in eligible] == [free.id]

    @pytest.mark.asyncio
    async def test_no_mentors_for_closed_cohort(self, ops, cohort, mentor):
        await ops.archive("COHORT", cohort.id)
        assert await ops.list_eligible_mentors_for_cohort(cohort.id) == []

    @pytest.mark.asyncio
    async def test_eligible_cohorts_ordered_by_start(self, ops, program, mentor):
        late = await ops.create_cohort(cohort_data(
            program.id, name="Late", start_date=date(2026, 6, 1), end_date=date(2026, 9, 1)
        ))
        early = await ops.create_cohort(cohort_data(
            program.id, name="Early", start_date=date(2026, 2, 1), end_date=date(2026, 4, 1)
        ))
        archived = await ops.create_cohort(cohort_data(program.id, name="Old"))
        await ops.archive("COHORT", archived.id)

        eligible = await ops.list_eligible_cohorts_for_mentor(mentor.id)
        assert [c.id for c in eligible] == [early.id, late.id]

    @pytest.mark.asyncio
    async def test_no_cohorts_for_full_mentor(self, ops, program):
        mentor = await ops.create_mentor(mentor_data(email="one@test.com", max_cohorts=1))
        first = await ops.create_cohort(cohort_data(program.id, name="A"))
        await ops.create_cohort(cohort_data(program.id, name="B"))
        await ops.assign_mentor_to_cohort(mentor.id, first.id)

        assert await ops.list_eligible_cohorts_for_mentor(mentor.id) == []
