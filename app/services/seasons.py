"""
Season rollover and season deletion.

Ending a season snapshots the standings into the season record, hands out
medals for the podium and resets every running total to zero. Lifetime
statistics (scorer matches, medals) survive the reset.
"""

import logging

from sqlalchemy import update

from app import db
from app.exceptions import NotFoundError, PreconditionError, ValidationError
from app.models import Fixture, Season, User
from app.services import ledger
from app.services.batch import WriteBatch, utcnow
from app.utils.cache_utils import cached_query, invalidate_model_cache

logger = logging.getLogger(__name__)

MEDAL_COLUMNS = {1: "gold_medals", 2: "silver_medals", 3: "bronze_medals"}


def get_season(season_id):
    season = db.session.get(Season, season_id)
    if season is None:
        raise NotFoundError(f"Season {season_id} not found")
    return season


def create_season(name, start_date=None):
    """Create and activate a new season; fails while another one is active"""
    if not name or not name.strip():
        raise ValidationError("Season name is required")

    season = Season.create_season(name.strip(), start_date)
    db.session.commit()
    logger.info(f"Created season {season.name} (ID: {season.id})")
    return season


def build_standings():
    """
    Current standings, highest total first.

    Ties are broken by username so the order (and therefore the rank) is
    deterministic. Rank is the 1-based position in that order.
    """
    return [
        {
            "user_id": user.id,
            "username": user.username,
            "points": user.total_points,
            "rank": position,
        }
        for position, user in enumerate(User.get_ranking(), start=1)
    ]


@cached_query("standings")
def get_cached_standings():
    """Standings for read-only API consumers"""
    return build_standings()


def _validate_rankings(final_rankings):
    if not isinstance(final_rankings, list):
        raise ValidationError("final_rankings must be a list")

    known_users = {user_id for (user_id,) in db.session.query(User.id).all()}
    seen = set()
    cleaned = []
    for entry in final_rankings:
        if not isinstance(entry, dict):
            raise ValidationError("Each ranking entry must be an object")
        user_id, points, rank = entry.get("user_id"), entry.get("points"), entry.get("rank")
        for label, value in (("user_id", user_id), ("points", points), ("rank", rank)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"Ranking {label} must be an integer, got {value!r}")
        if user_id not in known_users:
            raise ValidationError(f"Ranking refers to unknown user {user_id}")
        if user_id in seen:
            raise ValidationError(f"User {user_id} appears twice in the rankings")
        if rank < 1:
            raise ValidationError(f"Ranking rank must be positive, got {rank}")
        seen.add(user_id)
        cleaned.append(
            {
                "user_id": user_id,
                "username": entry.get("username"),
                "points": points,
                "rank": rank,
            }
        )

    return sorted(cleaned, key=lambda e: (e["rank"], e["user_id"]))


def end_season(season_id, final_rankings=None):
    """
    Close a season and start everybody from zero.

    The snapshot, status change and medals are committed first. The reset
    of every user's total follows in chunks. Running this again on an
    already ended season keeps the original snapshot and medals and only
    finishes the reset, so it is safe to retry after a partial failure.

    Args:
        season_id: Season ID
        final_rankings: optional caller-supplied rankings; the current
            standings are used when omitted

    Returns:
        list: the rankings stored on the season
    """
    season = get_season(season_id)
    batch = WriteBatch()

    if season.is_ended:
        # Resetting now would wipe the totals of the season that followed
        active = Season.get_active_season()
        if active is not None:
            raise PreconditionError(
                f"Season {season.id} already ended and {active.name} is now active"
            )
        logger.info(f"Season {season.id} already ended, resuming points reset")
        rankings = season.final_rankings or []
    else:
        if final_rankings is None:
            rankings = build_standings()
        else:
            rankings = _validate_rankings(final_rankings)

        with batch.group():
            batch.update_season(
                season.id,
                status=Season.STATUS_ENDED,
                end_date=utcnow(),
                final_rankings=rankings,
            )
            for entry in rankings:
                column = MEDAL_COLUMNS.get(entry["rank"])
                if column:
                    batch.add(
                        update(User)
                        .where(User.id == entry["user_id"])
                        .values({column: getattr(User, column) + 1})
                    )

    # Every user, not only ranked ones, so nobody carries points over
    for (user_id,) in db.session.query(User.id).filter(User.total_points != 0).all():
        batch.reset_user_points(user_id)

    try:
        chunks = batch.commit()
    finally:
        invalidate_model_cache("standings")

    logger.info(
        f"Ended season {season.id}: {len(rankings)} ranked users, "
        f"totals reset in {chunks} chunk(s)"
    )
    return rankings


def delete_season(season_id):
    """
    Delete a season and everything in it (admin only)

    Each fixture is removed through the ledger so the points it awarded are
    taken back first. Rerunning after a failure picks up the fixtures that
    are left.
    """
    season = get_season(season_id)

    fixture_ids = [
        fixture_id
        for (fixture_id,) in db.session.query(Fixture.id)
        .filter(Fixture.season_id == season.id)
        .order_by(Fixture.match_date.desc())
        .all()
    ]
    logger.info(f"Deleting season {season.id} with {len(fixture_ids)} fixtures")

    summaries = [ledger.delete_fixture(fixture_id) for fixture_id in fixture_ids]

    batch = WriteBatch()
    batch.delete_season(season.id)
    try:
        batch.commit()
    finally:
        invalidate_model_cache("standings")

    logger.info(f"Season {season_id} deleted")
    return summaries
