"""
Daily Reward Tests.

Tests the 24 hour daily coin window.
"""
import pytest
from datetime import timedelta

from app.core.errors import CooldownActive
from app.services import daily_rewards


@pytest.mark.unit
class TestDailyCoins:
    """Test collecting daily coins."""

    def test_first_collection(self, make_player, now):
        """A player who never collected gets 5 coins."""
        player = make_player(coins=10)
        granted = daily_rewards.collect_daily_coins(player, now)

        assert granted == 5
        assert player.coins == 15
        assert player.last_daily_collection == now

    def test_second_collection_within_window(self, make_player, now):
        """A second call inside 24 hours is rejected with the wait time."""
        player = make_player(coins=10)
        daily_rewards.collect_daily_coins(player, now)

        with pytest.raises(CooldownActive) as exc_info:
            daily_rewards.collect_daily_coins(player, now + timedelta(hours=1))

        assert exc_info.value.hours_until_next == 23
        assert player.coins == 15

    def test_hours_round_up(self, make_player, now):
        """Partial hours round up."""
        player = make_player(last_daily_collection=now)
        status = daily_rewards.daily_status(player, now + timedelta(hours=20, minutes=30))

        assert status.can_collect is False
        assert status.hours_until_next == 4

    def test_collect_after_window(self, make_player, now):
        """Exactly 24 hours later the coins are available again."""
        player = make_player(coins=0, last_daily_collection=now)
        later = now + timedelta(hours=24)

        assert daily_rewards.daily_status(player, later).can_collect is True
        daily_rewards.collect_daily_coins(player, later)

        assert player.coins == 5
        assert player.last_daily_collection == later

    def test_status_for_new_player(self, make_player, now):
        status = daily_rewards.daily_status(make_player(), now)

        assert status.can_collect is True
        assert status.hours_until_next is None

    def test_cooldown_message(self, make_player, now):
        player = make_player(last_daily_collection=now)

        with pytest.raises(CooldownActive) as exc_info:
            daily_rewards.collect_daily_coins(player, now)

        assert exc_info.value.message == "Daily coins already collected. Come back in 24 hours!"
        assert exc_info.value.to_dict()["hoursUntilNext"] == 24
