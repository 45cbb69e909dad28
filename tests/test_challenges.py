"""
Seasonal Challenge Tests.

Tests challenge generation, progress, one-time rewards, expiry and the
locked state for bake challenges.
"""
import pytest
from datetime import timedelta

from app.config.game_constants import CHALLENGE_HISTORY_LIMIT
from app.models.schemas import ChallengeStatus, ChallengeType
from app.services import challenges


@pytest.mark.unit
class TestGenerateChallenges:
    """Test dealing a new batch."""

    def test_batch_of_three_distinct(self, make_player, now, rng):
        player = make_player(level=3, kitchen_unlocked=True)
        batch = challenges.generate_challenges(player, [], now, rng)

        assert len(batch) == 3
        assert len({c.template for c in batch}) == 3
        for challenge in batch:
            assert challenge.season == "autumn"
            assert challenge.current_progress == 0
            assert challenge.expires_at == now + timedelta(hours=24)
            assert str(challenge.target_value) in challenge.description

    def test_replaces_open_challenges_keeps_history(self, make_challenge, make_player, now, rng):
        """Active and locked entries go; completed and failed stay."""
        player = make_player()
        existing = [
            make_challenge(id="active"),
            make_challenge(id="locked", status=ChallengeStatus.LOCKED),
            make_challenge(id="done", status=ChallengeStatus.COMPLETED),
            make_challenge(id="failed", status=ChallengeStatus.FAILED),
        ]

        challenges.generate_challenges(player, existing, now, rng)

        ids = {c.id for c in existing}
        assert "active" not in ids
        assert "locked" not in ids
        assert {"done", "failed"} <= ids
        assert len(existing) == 5

    def test_bake_challenges_locked_without_kitchen(self, make_player, now):
        """Bake challenges wait for the kitchen."""
        player = make_player(level=1)
        challenge = challenges._build_challenge(
            {
                "id": "bake_pies", "type": "bake", "title": "Pie Master",
                "description": "Bake {target} pies", "target": 4,
                "difficulty": 3, "rewards": {"coins": 120},
            },
            player, now,
        )

        assert challenge.status == ChallengeStatus.LOCKED


@pytest.mark.unit
class TestChallengeProgress:
    """Test progress and completion."""

    def test_progress_accumulates(self, make_challenge, make_player, now):
        challenge = make_challenge(target=3)

        completed = challenges.update_challenge_progress(make_player(), challenge, 2, now)

        assert completed is False
        assert challenge.current_progress == 2
        assert challenge.status == ChallengeStatus.ACTIVE

    def test_completion_pays_once(self, make_challenge, make_player, now):
        """Rewards are credited exactly once even with further progress."""
        player = make_player(coins=0, fertilizer=0)
        challenge = make_challenge(target=3)

        assert challenges.update_challenge_progress(player, challenge, 3, now) is True
        assert challenge.status == ChallengeStatus.COMPLETED
        assert challenge.completed_at == now
        assert player.coins == 80
        assert player.fertilizer == 2

        assert challenges.update_challenge_progress(player, challenge, 5, now) is False
        assert player.coins == 80

    def test_missing_or_inactive_is_noop(self, make_challenge, make_player, now):
        player = make_player(coins=0)
        locked = make_challenge(status=ChallengeStatus.LOCKED)

        assert challenges.update_challenge_progress(player, None, 1, now) is False
        assert challenges.update_challenge_progress(player, locked, 10, now) is False
        assert locked.current_progress == 0

    def test_non_positive_delta_is_noop(self, make_challenge, make_player, now):
        challenge = make_challenge()
        challenges.update_challenge_progress(make_player(), challenge, 0, now)

        assert challenge.current_progress == 0

    def test_record_activity_matches_type(self, make_challenge, make_player, now):
        """Only challenges of the same type advance."""
        harvest = make_challenge(id="h", challenge_type=ChallengeType.HARVEST)
        plant = make_challenge(id="p", challenge_type=ChallengeType.PLANT)

        challenges.record_activity(make_player(), [harvest, plant], ChallengeType.HARVEST, 1, now)

        assert harvest.current_progress == 1
        assert plant.current_progress == 0


@pytest.mark.unit
class TestChallengeLifecycle:
    """Test expiry and unlocking."""

    def test_expire_past_deadline(self, make_challenge, now):
        active = make_challenge(id="a")
        done = make_challenge(id="d", status=ChallengeStatus.COMPLETED)

        expired = challenges.expire_challenges([active, done], now + timedelta(hours=25))

        assert expired == 1
        assert active.status == ChallengeStatus.FAILED
        assert done.status == ChallengeStatus.COMPLETED

    def test_activate_when_kitchen_unlocked(self, make_challenge, make_player, now):
        locked = make_challenge(challenge_type=ChallengeType.BAKE, status=ChallengeStatus.LOCKED)

        assert challenges.activate_locked_challenges(make_player(), [locked]) == 0
        assert locked.status == ChallengeStatus.LOCKED

        player = make_player(level=2, kitchen_unlocked=True)
        assert challenges.activate_locked_challenges(player, [locked]) == 1
        assert locked.status == ChallengeStatus.ACTIVE


@pytest.mark.unit
class TestChallengeHistory:
    """Test the current batch view and history trimming."""

    def test_current_batch_is_newest_deal(self, make_challenge, now):
        old = make_challenge(id="old", status=ChallengeStatus.FAILED)
        fresh = [
            make_challenge(id=f"new-{i}", created_at=now + timedelta(hours=25))
            for i in range(3)
        ]

        batch = challenges.current_batch([old] + fresh)

        assert [c.id for c in batch] == ["new-0", "new-1", "new-2"]

    def test_current_batch_keeps_completed_members(self, make_challenge, now):
        done = make_challenge(id="done", status=ChallengeStatus.COMPLETED)
        active = make_challenge(id="active")

        assert {c.id for c in challenges.current_batch([done, active])} == {"done", "active"}

    def test_current_batch_empty(self):
        assert challenges.current_batch([]) == []

    def test_prune_keeps_newest_finished_and_open(self, make_challenge, now):
        history = [
            make_challenge(
                id=f"failed-{i}", status=ChallengeStatus.FAILED,
                expires_at=now + timedelta(hours=i),
            )
            for i in range(CHALLENGE_HISTORY_LIMIT + 4)
        ]
        history.append(make_challenge(id="active"))

        removed = challenges.prune_challenge_history(history)

        assert removed == 4
        ids = {c.id for c in history}
        assert "active" in ids
        assert {f"failed-{i}" for i in range(4)}.isdisjoint(ids)
        assert len(history) == CHALLENGE_HISTORY_LIMIT + 1
