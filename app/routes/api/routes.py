from datetime import datetime
from functools import wraps

from flask import jsonify, request

from app import db
from app.exceptions import ValidationError
from app.models import Prediction
from app.routes.api import bp
from app.services import ledger, seasons
from app.utils.frequency import summarize_predictions


def add_security_headers(f):
    """Add security headers to API responses"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = f(*args, **kwargs)
        if hasattr(response, "headers"):
            response.headers["Cache-Control"] = (
                "no-store, no-cache, must-revalidate, max-age=0"
            )
        return response

    return decorated_function


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _parse_datetime(value, field):
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO 8601 date, got {value!r}")


# Fixture administration


@bp.route("/fixtures/<int:fixture_id>/result", methods=["POST"])
@add_security_headers
def set_fixture_result(fixture_id):
    """Set (or correct) a fixture result and score every prediction"""
    summary = ledger.set_result(fixture_id, _json_body())
    return jsonify(summary.to_dict())


@bp.route("/fixtures/<int:fixture_id>/recalculate", methods=["POST"])
@add_security_headers
def recalculate_fixture(fixture_id):
    """Rescore a fixture against its stored result"""
    summary = ledger.recalculate(fixture_id)
    return jsonify(summary.to_dict())


@bp.route("/fixtures/<int:fixture_id>", methods=["PATCH"])
@add_security_headers
def update_fixture(fixture_id):
    """Update fixture details, recalculating points if a result exists"""
    data = _json_body()
    summary = ledger.update_fixture(
        fixture_id,
        home_team=data.get("home_team"),
        away_team=data.get("away_team"),
        match_date=_parse_datetime(data.get("match_date"), "match_date"),
        status=data.get("status"),
    )
    fixture = ledger.get_fixture(fixture_id)
    return jsonify(
        {
            "fixture": fixture.to_dict(),
            "recalculation": summary.to_dict() if summary else None,
        }
    )


@bp.route("/fixtures/<int:fixture_id>", methods=["DELETE"])
@add_security_headers
def delete_fixture(fixture_id):
    """Delete a fixture, its predictions and the points they earned"""
    summary = ledger.delete_fixture(fixture_id)
    return jsonify(summary.to_dict())


@bp.route("/fixtures/<int:fixture_id>/statistics")
def fixture_statistics(fixture_id):
    """Get prediction statistics for a fixture"""
    fixture = ledger.get_fixture(fixture_id)
    return jsonify(summarize_predictions(fixture.predictions.all()))


@bp.route("/predictions/<int:prediction_id>", methods=["PATCH"])
@add_security_headers
def update_prediction(prediction_id):
    """Admin edit of a prediction"""
    data = _json_body()
    score = data.get("predicted_score")
    if not isinstance(score, dict):
        raise ValidationError("predicted_score with home and away is required")
    summary = ledger.update_prediction(
        prediction_id,
        score.get("home"),
        score.get("away"),
        data.get("predicted_player"),
    )
    prediction = db.session.get(Prediction, prediction_id)
    return jsonify(
        {
            "prediction": prediction.to_dict(),
            "recalculation": summary.to_dict() if summary else None,
        }
    )


# Seasons


@bp.route("/seasons", methods=["POST"])
@add_security_headers
def create_season():
    """Create a new active season"""
    data = _json_body()
    season = seasons.create_season(
        data.get("name"), _parse_datetime(data.get("start_date"), "start_date")
    )
    return jsonify(season.to_dict()), 201


@bp.route("/seasons/<int:season_id>")
def season_detail(season_id):
    """Get a season including its final rankings once ended"""
    return jsonify(seasons.get_season(season_id).to_dict())


@bp.route("/seasons/<int:season_id>/end", methods=["POST"])
@add_security_headers
def end_season(season_id):
    """End a season, snapshot rankings and reset all totals"""
    data = request.get_json(silent=True) or {}
    rankings = seasons.end_season(season_id, data.get("final_rankings"))
    return jsonify({"season_id": season_id, "final_rankings": rankings})


@bp.route("/seasons/<int:season_id>", methods=["DELETE"])
@add_security_headers
def delete_season(season_id):
    """Delete a season and all of its fixtures"""
    summaries = seasons.delete_season(season_id)
    return jsonify(
        {
            "season_id": season_id,
            "fixtures_deleted": len(summaries),
            "points_delta": sum(summary.points_delta for summary in summaries),
        }
    )


@bp.route("/standings")
def standings():
    """Get current standings"""
    return jsonify(seasons.get_cached_standings())
