"""
Integration Tests for the Relationship Consistency Engine

Both views of the mentor <-> cohort relationship must agree after every
operation, and a mismatch must roll the whole change back.
"""
import pytest
from sqlalchemy import update

from cohortdesk.errors import ConcurrentModificationError, ConsistencyError, GuardError
from cohortdesk.orm.audit_log import AuditAction, EntityType
from cohortdesk.orm.cohort import Cohort
from cohortdesk.orm.cohort_mentor_link import CohortMentorLink
from cohortdesk.tests.conftest import cohort_data, mentor_data


async def assert_symmetric(ops, mentor_id, cohort_id, linked):
    mentor = await ops.get_entity("MENTOR", mentor_id)
    cohort = await ops.get_entity("COHORT", cohort_id)
    assert (cohort_id in mentor.assigned_cohort_ids) is linked
    assert (mentor_id in cohort.mentor_ids) is linked


class TestLinking:

    @pytest.mark.asyncio
    async def test_link_updates_both_views(self, ops, mentor, cohort):
        result = await ops.relationships.link_mentor_cohort(mentor.id, cohort.id)

        assert result.mentor.assigned_cohort_ids == [cohort.id]
        assert result.cohort.mentor_ids == [mentor.id]
        await assert_symmetric(ops, mentor.id, cohort.id, linked=True)

    @pytest.mark.asyncio
    async def test_duplicate_link_rejected_and_rolled_back(self, ops, mentor, cohort):
        await ops.relationships.link_mentor_cohort(mentor.id, cohort.id)

        with pytest.raises(GuardError) as exc:
            await ops.relationships.link_mentor_cohort(mentor.id, cohort.id)
        assert exc.value.code == "MENTOR_ALREADY_ASSIGNED"
        assert mentor.name in exc.value.message
        assert cohort.name in exc.value.message

        total = (await ops.store.db.execute(CohortMentorLink.__table__.select())).all()
        assert len(total) == 1
        await assert_symmetric(ops, mentor.id, cohort.id, linked=True)

    @pytest.mark.asyncio
    async def test_unlink_missing_pair(self, ops, mentor, cohort):
        with pytest.raises(GuardError) as exc:
            await ops.relationships.unlink_mentor_cohort(mentor.id, cohort.id)
        assert exc.value.code == "MENTOR_NOT_ASSIGNED"

    @pytest.mark.asyncio
    async def test_link_audits_both_sides(self, ops, mentor, cohort):
        await ops.relationships.link_mentor_cohort(mentor.id, cohort.id)

        mentor_trail = await ops.audit_trail(EntityType.MENTOR, mentor.id)
        cohort_trail = await ops.audit_trail(EntityType.COHORT, cohort.id)
        assert mentor_trail[-1].action == AuditAction.MENTOR_ASSIGNED
        assert mentor_trail[-1].details == {"cohort_id": cohort.id}
        assert cohort_trail[-1].action == AuditAction.MENTOR_ASSIGNED
        assert mentor_trail[-1].actor == "admin@test.com"


class TestClearing:

    @pytest.mark.asyncio
    async def test_clear_mentor_links(self, ops, program, mentor):
        cohort_ids = []
        for i in range(3):
            cohort = await ops.create_cohort(cohort_data(program.id, name=f"Batch {i}"))
            await ops.relationships.link_mentor_cohort(mentor.id, cohort.id)
            cohort_ids.append(cohort.id)

        cleared = await ops.relationships.clear_mentor_links(mentor.id)

        assert cleared == cohort_ids
        for cohort_id in cohort_ids:
            await assert_symmetric(ops, mentor.id, cohort_id, linked=False)

    @pytest.mark.asyncio
    async def test_clear_cohort_links(self, ops, cohort):
        mentor_ids = []
        for i in range(2):
            mentor = await ops.create_mentor(mentor_data(email=f"m{i}@test.com"))
            await ops.relationships.link_mentor_cohort(mentor.id, cohort.id)
            mentor_ids.append(mentor.id)

        assert await ops.relationships.clear_cohort_links(cohort.id) == mentor_ids
        assert (await ops.get_entity("COHORT", cohort.id)).mentor_ids == []

    @pytest.mark.asyncio
    async def test_clear_with_no_links(self, ops, mentor, cohort):
        assert await ops.relationships.clear_mentor_links(mentor.id) == []
        assert await ops.relationships.clear_cohort_links(cohort.id) == []


class TestConsistencyFailures:

    @pytest.mark.asyncio
    async def test_view_mismatch_rolls_back(self, ops, mentor, cohort, monkeypatch):
        async def stale_view(cohort_id):
            return []

        monkeypatch.setattr(ops.store, "mentor_ids_for_cohort", stale_view)

        with pytest.raises(ConsistencyError) as exc:
            await ops.relationships.link_mentor_cohort(mentor.id, cohort.id)
        assert exc.value.status_code == 500
        assert "log_id" in exc.value.details

        monkeypatch.undo()
        await assert_symmetric(ops, mentor.id, cohort.id, linked=False)
        trail = await ops.audit_trail(EntityType.MENTOR, mentor.id)
        assert all(entry.action != AuditAction.MENTOR_ASSIGNED for entry in trail)

    @pytest.mark.asyncio
    async def test_stale_write_is_rejected(self, ops, cohort):
        row = await ops.store.get_cohort(cohort.id)

        # Another writer bumps the version behind this session's back
        await ops.store.db.execute(
            update(Cohort)
            .where(Cohort.id == cohort.id)
            .values(version_id=Cohort.version_id + 1)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(ConcurrentModificationError):
            async with ops.store.transaction():
                row.name = "Renamed"

        fresh = await ops.get_entity("COHORT", cohort.id)
        assert fresh.name == "Batch 1"


class TestIntegrityReport:

    @pytest.mark.asyncio
    async def test_clean_store(self, ops, mentor, cohort):
        await ops.assign_mentor_to_cohort(mentor.id, cohort.id)

        report = await ops.verify_link_integrity()
        assert report["is_valid"] is True
        assert report["total_links"] == 1
        assert report["errors"] == []

    @pytest.mark.asyncio
    async def test_over_capacity_detected(self, ops, program):
        mentor = await ops.create_mentor(mentor_data(max_cohorts=1))
        for i in range(2):
            cohort = await ops.create_cohort(cohort_data(program.id, name=f"Batch {i}"))
            # Raw link, bypassing the capacity guard
            await ops.relationships.link_mentor_cohort(mentor.id, cohort.id)

        report = await ops.verify_link_integrity()
        assert report["is_valid"] is False
        assert any("max 1" in error for error in report["errors"])
