"""
Seasonal challenges: time-boxed objectives with progress tracking.

A challenge pays its rewards exactly once, on the update that moves it from
active to completed. Later progress updates see a completed challenge and
do nothing.
"""

import logging
import random
import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from app.config.game_constants import (
    CHALLENGE_BATCH_SIZE,
    CHALLENGE_DURATION_HOURS,
    CHALLENGE_HISTORY_LIMIT,
    CHALLENGE_TEMPLATES,
    SEASONS_BY_MONTH,
)
from app.models.schemas import (
    ChallengeStatus,
    ChallengeType,
    Player,
    ResourceBundle,
    SeasonalChallenge,
)
from app.services.progression import credit_bundle

logger = logging.getLogger(__name__)


def season_for(now: datetime) -> str:
    return SEASONS_BY_MONTH[now.month]


def _build_challenge(template: dict, player: Player, now: datetime) -> SeasonalChallenge:
    challenge_type = ChallengeType(template["type"])
    status = ChallengeStatus.ACTIVE
    if challenge_type == ChallengeType.BAKE and not player.kitchen_unlocked:
        status = ChallengeStatus.LOCKED

    return SeasonalChallenge(
        id=f"{template['id']}-{uuid.uuid4().hex[:8]}",
        player_id=player.id,
        template=template["id"],
        title=template["title"],
        description=template["description"].format(target=template["target"]),
        season=season_for(now),
        type=challenge_type,
        target_value=template["target"],
        current_progress=0,
        rewards=ResourceBundle(**template["rewards"]),
        status=status,
        difficulty=template["difficulty"],
        created_at=now,
        expires_at=now + timedelta(hours=CHALLENGE_DURATION_HOURS),
    )


def generate_challenges(player: Player, challenges: List[SeasonalChallenge],
                        now: datetime, rng: random.Random) -> List[SeasonalChallenge]:
    """
    Replace the player's open challenges with a fresh batch.

    Active and locked entries are removed from ``challenges`` in place;
    completed and failed ones stay as history. Returns the new batch.
    """
    challenges[:] = [
        c for c in challenges
        if c.status not in (ChallengeStatus.ACTIVE, ChallengeStatus.LOCKED)
    ]

    count = min(CHALLENGE_BATCH_SIZE, len(CHALLENGE_TEMPLATES))
    batch = [
        _build_challenge(template, player, now)
        for template in rng.sample(CHALLENGE_TEMPLATES, count)
    ]
    challenges.extend(batch)
    logger.info(f"[FARM] Generated {len(batch)} challenge(s) for player {player.id}")
    return batch


def update_challenge_progress(player: Player, challenge: Optional[SeasonalChallenge],
                              delta: int, now: datetime) -> bool:
    """Add progress to an active challenge. Returns True if it just completed."""
    if challenge is None or challenge.status != ChallengeStatus.ACTIVE or delta <= 0:
        return False

    challenge.current_progress += delta
    if challenge.current_progress < challenge.target_value:
        return False

    challenge.status = ChallengeStatus.COMPLETED
    challenge.completed_at = now
    credit_bundle(player, challenge.rewards)
    logger.info(f"[FARM] Player {player.id} completed challenge {challenge.id}")
    return True


def record_activity(player: Player, challenges: Sequence[SeasonalChallenge],
                    challenge_type: ChallengeType, amount: int,
                    now: datetime) -> List[SeasonalChallenge]:
    """Feed a game action into every active challenge of the same type."""
    completed = []
    for challenge in challenges:
        if challenge.type != challenge_type:
            continue
        if update_challenge_progress(player, challenge, amount, now):
            completed.append(challenge)
    return completed


def expire_challenges(challenges: Sequence[SeasonalChallenge], now: datetime) -> int:
    expired = 0
    for challenge in challenges:
        if (challenge.status in (ChallengeStatus.ACTIVE, ChallengeStatus.LOCKED)
                and challenge.expires_at < now):
            challenge.status = ChallengeStatus.FAILED
            expired += 1
    return expired


def current_batch(challenges: Sequence[SeasonalChallenge]) -> List[SeasonalChallenge]:
    """The most recently dealt batch, whatever state its challenges are in."""
    if not challenges:
        return []
    latest = max(c.created_at for c in challenges)
    return [c for c in challenges if c.created_at == latest]


def prune_challenge_history(challenges: List[SeasonalChallenge]) -> int:
    """
    Drop the oldest completed and failed challenges beyond
    CHALLENGE_HISTORY_LIMIT, in place. Returns how many were removed.
    """
    open_statuses = (ChallengeStatus.ACTIVE, ChallengeStatus.LOCKED)
    finished = [c for c in challenges if c.status not in open_statuses]
    if len(finished) <= CHALLENGE_HISTORY_LIMIT:
        return 0

    finished.sort(key=lambda c: c.completed_at or c.expires_at, reverse=True)
    dropped = {c.id for c in finished[CHALLENGE_HISTORY_LIMIT:]}
    challenges[:] = [c for c in challenges if c.id not in dropped]
    return len(dropped)


def activate_locked_challenges(player: Player, challenges: Sequence[SeasonalChallenge]) -> int:
    """Open bake challenges once the kitchen exists."""
    if not player.kitchen_unlocked:
        return 0
    activated = 0
    for challenge in challenges:
        if challenge.status == ChallengeStatus.LOCKED:
            challenge.status = ChallengeStatus.ACTIVE
            activated += 1
    return activated
