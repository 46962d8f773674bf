"""
Reconciliation ledger.

Keeps every user's ``total_points`` equal to the sum of ``points_earned``
over their predictions in the active season without ever re-reading a
user's prediction history. Each operation recomputes the affected
predictions, diffs the new values against what is stored, and applies the
differences to the user counters as relative increments in the same atomic
chunk as the prediction writes.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import func

from app import db
from app.exceptions import NotFoundError, PreconditionError, ValidationError
from app.models import Fixture, Prediction, Season, User
from app.models.prediction import validate_prediction
from app.services.batch import WriteBatch, utcnow
from app.utils.cache_utils import invalidate_model_cache
from app.utils.frequency import build_prediction_counts
from app.utils.scoring import FixtureResult, calculate_prediction_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationSummary:
    """Summary returned after a fixture has been scored or reversed"""

    fixture_id: int
    predictions: int
    users_updated: int
    points_delta: int
    scorer_match_delta: int
    chunks: int

    def to_dict(self):
        return {
            "fixture_id": self.fixture_id,
            "predictions": self.predictions,
            "users_updated": self.users_updated,
            "points_delta": self.points_delta,
            "scorer_match_delta": self.scorer_match_delta,
            "chunks": self.chunks,
        }


@dataclass
class _UserDelta:
    points: int = 0
    scorer_matches: int = 0

    def __bool__(self):
        return bool(self.points or self.scorer_matches)


def get_fixture(fixture_id):
    fixture = db.session.get(Fixture, fixture_id)
    if fixture is None:
        raise NotFoundError(f"Fixture {fixture_id} not found")
    return fixture


def counts_toward_totals(fixture):
    """Only fixtures of the active season feed the running totals"""
    season = fixture.season
    return season is not None and season.is_active


def _load_predictions(fixture_id):
    return (
        Prediction.query.filter_by(fixture_id=fixture_id)
        .order_by(Prediction.created_at.asc(), Prediction.id.asc())
        .all()
    )


def _scorer_match_delta(had_match, has_match):
    if has_match and not had_match:
        return 1
    if had_match and not has_match:
        return -1
    return 0


def _reconcile(fixture, result, batch, fixture_values=None):
    """Recompute every prediction of ``fixture`` and stage the deltas"""
    predictions = _load_predictions(fixture.id)
    score_counts, player_counts = build_prediction_counts(predictions)
    apply_points = counts_toward_totals(fixture)
    calculated_at = utcnow()

    by_user = defaultdict(list)
    for prediction in predictions:
        by_user[prediction.user_id].append(prediction)

    # The fixture write rides in the first group so a retried result
    # overwrite lands before any prediction is rescored
    if fixture_values:
        with batch.group():
            batch.update_fixture(fixture.id, **fixture_values)

    points_delta = 0
    scorer_delta = 0
    users_updated = 0

    for user_id, user_predictions in by_user.items():
        delta = _UserDelta()

        with batch.group():
            for prediction in user_predictions:
                score = calculate_prediction_score(
                    prediction, result, score_counts, player_counts
                )
                delta.points += score.points - (prediction.points_earned or 0)
                delta.scorer_matches += _scorer_match_delta(
                    prediction.has_scorer_match, score.has_scorer_match
                )
                batch.update_prediction_score(
                    prediction.id, score.points, score.breakdown, calculated_at
                )

            if not apply_points:
                delta.points = 0
            if delta:
                batch.increment_user(
                    user_id, points=delta.points, scorer_matches=delta.scorer_matches
                )
                users_updated += 1

        points_delta += delta.points
        scorer_delta += delta.scorer_matches

    # Committed chunks are visible even when a later one fails
    try:
        chunks = batch.commit()
    finally:
        invalidate_model_cache("standings")

    summary = ReconciliationSummary(
        fixture_id=fixture.id,
        predictions=len(predictions),
        users_updated=users_updated,
        points_delta=points_delta,
        scorer_match_delta=scorer_delta,
        chunks=chunks,
    )
    logger.info(
        f"Scored fixture {fixture.id}: {summary.predictions} predictions, "
        f"{summary.users_updated} users updated, net {summary.points_delta:+d} points, "
        f"{summary.chunks} chunk(s)"
    )
    return summary


def set_result(fixture_id, result):
    """
    Record a fixture's result and score every prediction for it.

    Calling this again with a corrected result (or the same one) is safe:
    users are only moved by the difference between the new and the stored
    prediction values.

    Args:
        fixture_id: Fixture ID
        result: FixtureResult or a payload dict accepted by FixtureResult.from_dict
    """
    if not isinstance(result, FixtureResult):
        result = FixtureResult.from_dict(result)

    fixture = get_fixture(fixture_id)
    batch = WriteBatch()

    return _reconcile(
        fixture,
        result,
        batch,
        fixture_values={
            "actual_home": result.home,
            "actual_away": result.away,
            "actual_scorers": list(result.scorers) if result.scorers is not None else None,
            "actual_assists": list(result.assists) if result.assists is not None else None,
            "status": Fixture.STATUS_FINISHED,
            "results_set_at": utcnow(),
        },
    )


def recalculate(fixture_id):
    """Rescore a fixture against the result already stored on it"""
    fixture = get_fixture(fixture_id)
    if not fixture.has_result:
        raise PreconditionError(f"Fixture {fixture_id} has no result to recalculate")

    return _reconcile(fixture, fixture.result, WriteBatch())


def update_fixture(fixture_id, home_team=None, away_team=None, match_date=None, status=None):
    """
    Update fixture details (admin only)

    If the fixture already has a result, all prediction points are
    recalculated afterwards.
    """
    fixture = get_fixture(fixture_id)

    if status is not None and status not in Fixture.STATUSES:
        raise ValidationError(f"Unknown fixture status: {status}")

    if home_team is not None:
        fixture.home_team = home_team
    if away_team is not None:
        fixture.away_team = away_team
    if match_date is not None:
        fixture.match_date = match_date
    if status is not None:
        fixture.status = status

    db.session.commit()
    logger.info(f"Updated fixture {fixture_id}")

    if fixture.has_result:
        return recalculate(fixture_id)
    return None


def update_prediction(prediction_id, predicted_home, predicted_away, predicted_player=None):
    """
    Update any user's prediction (admin only)

    Editing one prediction can change every other prediction's uniqueness
    tier, so a fixture that already has a result is recalculated in full.
    """
    prediction = db.session.get(Prediction, prediction_id)
    if prediction is None:
        raise NotFoundError(f"Prediction {prediction_id} not found")

    validate_prediction(predicted_home, predicted_away, predicted_player)

    prediction.predicted_home = predicted_home
    prediction.predicted_away = predicted_away
    prediction.predicted_player = (predicted_player or "").strip() or None
    db.session.commit()

    fixture = prediction.fixture
    if fixture.has_result:
        return recalculate(fixture.id)
    return None


def delete_fixture(fixture_id):
    """
    Delete a fixture and all its predictions (admin only)

    Points and scorer credits earned on the fixture are subtracted from
    their owners in the same chunk that deletes the predictions.
    """
    fixture = get_fixture(fixture_id)
    predictions = _load_predictions(fixture.id)
    apply_points = counts_toward_totals(fixture)
    batch = WriteBatch()

    by_user = defaultdict(list)
    for prediction in predictions:
        by_user[prediction.user_id].append(prediction)

    points_delta = 0
    scorer_delta = 0
    users_updated = 0

    for user_id, user_predictions in by_user.items():
        delta = _UserDelta()

        with batch.group():
            for prediction in user_predictions:
                # Only scored predictions were ever added to the totals
                if prediction.is_scored:
                    delta.points -= prediction.points_earned
                if prediction.has_scorer_match:
                    delta.scorer_matches -= 1
                batch.delete_prediction(prediction.id)

            if not apply_points:
                delta.points = 0
            if delta:
                batch.increment_user(
                    user_id, points=delta.points, scorer_matches=delta.scorer_matches
                )
                users_updated += 1

        points_delta += delta.points
        scorer_delta += delta.scorer_matches

    # Last, so a retry after a partial failure still finds the fixture
    with batch.group():
        batch.delete_fixture(fixture.id)

    try:
        chunks = batch.commit()
    finally:
        invalidate_model_cache("standings")

    logger.info(
        f"Deleted fixture {fixture_id}: {len(predictions)} predictions removed, "
        f"{users_updated} users updated, net {points_delta:+d} points"
    )
    return ReconciliationSummary(
        fixture_id=fixture_id,
        predictions=len(predictions),
        users_updated=users_updated,
        points_delta=points_delta,
        scorer_match_delta=scorer_delta,
        chunks=chunks,
    )


def audit_ledger():
    """
    Compare every user's running total with the sum of their scored
    active-season predictions.

    Returns:
        list: one dict per mismatching user (empty when the ledger is consistent)
    """
    active = Season.get_active_season()

    expected = {}
    if active is not None:
        rows = (
            db.session.query(
                Prediction.user_id, func.coalesce(func.sum(Prediction.points_earned), 0)
            )
            .join(Fixture, Prediction.fixture_id == Fixture.id)
            .filter(Fixture.season_id == active.id)
            .group_by(Prediction.user_id)
            .all()
        )
        expected = {user_id: int(total) for user_id, total in rows}

    mismatches = []
    for user in User.query.order_by(User.username.asc()).all():
        should_be = expected.get(user.id, 0)
        if user.total_points != should_be:
            mismatches.append(
                {
                    "user_id": user.id,
                    "username": user.username,
                    "total_points": user.total_points,
                    "expected_points": should_be,
                    "difference": user.total_points - should_be,
                }
            )

    if mismatches:
        logger.warning(f"Ledger audit found {len(mismatches)} mismatching users")
    return mismatches
