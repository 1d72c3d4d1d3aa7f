"""Cooldown between assessments for one (user, health concern) pair."""

from datetime import datetime, timedelta, timezone

import pytest

from app.services.assessment_service import AssessmentService
from app.services.cooldown import CooldownGate, evaluate_cooldown

from fakes import FakeCollection, make_assessment

NOW = datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc)


class TestEvaluateCooldown:
    def test_no_previous_assessment(self):
        decision = evaluate_cooldown(None, NOW)
        assert decision.allowed
        assert decision.reason == "No previous assessment found"

    def test_denied_inside_window(self):
        latest = make_assessment(
            created_at=NOW - timedelta(days=5), min_days_before_next_assessment=14
        )
        decision = evaluate_cooldown(latest, NOW)
        assert not decision.allowed
        assert decision.days_remaining == 9
        assert decision.reason == "Must wait 9 more day(s) before next assessment"
        assert decision.last_assessment_date == latest.created_at

    def test_partial_days_are_floored(self):
        latest = make_assessment(
            created_at=NOW - timedelta(days=13, hours=23),
            min_days_before_next_assessment=14,
        )
        decision = evaluate_cooldown(latest, NOW)
        assert not decision.allowed
        assert decision.days_remaining == 1

    def test_allowed_on_boundary(self):
        latest = make_assessment(
            created_at=NOW - timedelta(days=14), min_days_before_next_assessment=14
        )
        decision = evaluate_cooldown(latest, NOW)
        assert decision.allowed
        assert decision.days_since_last == 14

    def test_zero_cooldown_allows_immediately(self):
        latest = make_assessment(created_at=NOW, min_days_before_next_assessment=0)
        assert evaluate_cooldown(latest, NOW).allowed

    def test_naive_datetimes_treated_as_utc(self):
        latest = make_assessment(
            created_at=datetime(2025, 3, 10, 12, 0), min_days_before_next_assessment=7
        )
        assert evaluate_cooldown(latest, NOW).allowed


class TestCooldownGate:
    @pytest.mark.asyncio
    async def test_uses_most_recent_active_assessment(self):
        older = make_assessment(
            created_at=NOW - timedelta(days=40), min_days_before_next_assessment=30
        )
        newer = make_assessment(
            created_at=NOW - timedelta(days=2), min_days_before_next_assessment=7
        )
        collection = FakeCollection(docs=[older.to_document(), newer.to_document()])
        gate = CooldownGate(AssessmentService(collection=collection))

        decision = await gate.check("user-1", "hc-1", now=NOW)
        assert not decision.allowed
        assert decision.days_remaining == 5

    @pytest.mark.asyncio
    async def test_soft_deleted_assessment_ignored(self):
        deleted = make_assessment(
            created_at=NOW - timedelta(days=1),
            min_days_before_next_assessment=30,
            is_active=False,
        )
        collection = FakeCollection(docs=[deleted.to_document()])
        gate = CooldownGate(AssessmentService(collection=collection))

        assert (await gate.check("user-1", "hc-1", now=NOW)).allowed

    @pytest.mark.asyncio
    async def test_other_health_concern_does_not_count(self):
        other = make_assessment(
            health_concern_id="hc-2",
            created_at=NOW - timedelta(days=1),
            min_days_before_next_assessment=30,
        )
        collection = FakeCollection(docs=[other.to_document()])
        gate = CooldownGate(AssessmentService(collection=collection))

        assert (await gate.check("user-1", "hc-1", now=NOW)).allowed

    @pytest.mark.asyncio
    async def test_reads_store_on_every_call(self):
        collection = FakeCollection()
        gate = CooldownGate(AssessmentService(collection=collection))
        assert (await gate.check("user-1", "hc-1", now=NOW)).allowed

        await collection.insert_one(
            make_assessment(
                created_at=NOW - timedelta(hours=1), min_days_before_next_assessment=10
            ).to_document()
        )
        assert not (await gate.check("user-1", "hc-1", now=NOW)).allowed
