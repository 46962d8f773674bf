"""
Scoring Engine for the Prediction Pool

This module handles scoring calculations for individual predictions.
Population counts come from app/utils/frequency.py and the bookkeeping of
user totals lives in app/services/ledger.py.
"""

from dataclasses import dataclass, field

from app.exceptions import ValidationError
from app.utils.frequency import score_key
from app.utils.names import normalize_player_name


class BonusKind:
    """Breakdown tags stored on scored predictions"""

    EXACT_SCORE = "exactScore"
    EXACT_SCORE_ALONE = "exactScoreAlone"
    WIN_OR_DRAW = "winOrDraw"
    MATCHED_SCORER = "matchedScorer"
    MATCHED_SCORER_ALONE = "matchedScorerAlone"
    MATCHED_ASSIST = "matchedAssist"
    MATCHED_ASSIST_ALONE = "matchedAssistAlone"

    SCORER_TAGS = (MATCHED_SCORER, MATCHED_SCORER_ALONE)


EXACT_SCORE_ALONE_POINTS = 4
EXACT_SCORE_POINTS = 2
WIN_OR_DRAW_POINTS = 1

# Per goal / per assist
SCORER_ALONE_POINTS = 4
SCORER_POINTS = 2
ASSIST_ALONE_POINTS = 2
ASSIST_POINTS = 1


def validate_score(home, away, label="score"):
    """Reject anything that is not a pair of non-negative integers"""
    for side, value in (("home", home), ("away", away)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{label} {side} must be an integer, got {value!r}")
        if value < 0:
            raise ValidationError(f"{label} {side} cannot be negative, got {value}")


def _validate_names(names, label):
    if names is None:
        return None
    if not isinstance(names, (list, tuple)):
        raise ValidationError(f"{label} must be a list of player names")
    for name in names:
        if not isinstance(name, str):
            raise ValidationError(f"{label} may only contain names, got {name!r}")
    return tuple(names)


@dataclass(frozen=True)
class FixtureResult:
    """Final score of a fixture plus its goal scorers and assist providers.

    ``scorers``/``assists`` keep duplicates, each entry is one goal. ``None``
    means the admin did not record that list at all.
    """

    home: int
    away: int
    scorers: tuple = None
    assists: tuple = None

    def __post_init__(self):
        validate_score(self.home, self.away, "actual score")
        object.__setattr__(self, "scorers", _validate_names(self.scorers, "actual scorers"))
        object.__setattr__(self, "assists", _validate_names(self.assists, "actual assists"))

    @classmethod
    def from_dict(cls, data):
        """Build a result from an API/CLI payload"""
        if not isinstance(data, dict):
            raise ValidationError("Result payload must be an object")

        score = data.get("actual_score")
        if not isinstance(score, dict) or "home" not in score or "away" not in score:
            raise ValidationError("actual_score with home and away is required")

        return cls(
            home=score["home"],
            away=score["away"],
            scorers=data.get("actual_scorers"),
            assists=data.get("actual_assists"),
        )

    def to_dict(self):
        return {
            "actual_score": {"home": self.home, "away": self.away},
            "actual_scorers": list(self.scorers) if self.scorers is not None else None,
            "actual_assists": list(self.assists) if self.assists is not None else None,
        }


@dataclass(frozen=True)
class PredictionScore:
    """Points for one prediction and the tags that produced them"""

    points: int = 0
    breakdown: dict = field(default_factory=dict)

    @property
    def has_scorer_match(self):
        return has_scorer_match(self.breakdown)


def has_scorer_match(breakdown):
    """Check whether a stored breakdown carries a scorer bonus"""
    if not breakdown:
        return False
    return any(breakdown.get(tag) for tag in BonusKind.SCORER_TAGS)


def outcome_category(home, away):
    """Outcome from the home side's point of view"""
    if home > away:
        return "win"
    if home == away:
        return "draw"
    return "loss"


def _count_occurrences(player, names):
    if not names:
        return 0
    return sum(1 for name in names if normalize_player_name(name) == player)


def calculate_prediction_score(prediction, result, score_counts, player_counts):
    """
    Calculate score for a single prediction.

    Scoring rules:
        exact score         4 if nobody else predicted it, else 2
        right outcome only  1 (win/draw/loss from the home side)
        predicted scorer    4 per goal if alone on that player, else 2
        predicted assist    2 per assist if alone on that player, else 1

    Args:
        prediction: object with predicted_home, predicted_away, predicted_player
        result: FixtureResult
        score_counts: predictions per score key for the whole fixture
        player_counts: predictions per normalized player for the whole fixture

    Returns:
        PredictionScore with only the tags that fired in its breakdown
    """
    breakdown = {}

    home, away = prediction.predicted_home, prediction.predicted_away

    if home == result.home and away == result.away:
        if score_counts.get(score_key(home, away), 0) == 1:
            breakdown[BonusKind.EXACT_SCORE_ALONE] = EXACT_SCORE_ALONE_POINTS
        else:
            breakdown[BonusKind.EXACT_SCORE] = EXACT_SCORE_POINTS
    elif outcome_category(home, away) == outcome_category(result.home, result.away):
        breakdown[BonusKind.WIN_OR_DRAW] = WIN_OR_DRAW_POINTS

    player = normalize_player_name(prediction.predicted_player)
    if player and (result.scorers is not None or result.assists is not None):
        # One tier for both bonuses, taken from the same snapshot
        is_only_one = player_counts.get(player, 0) == 1

        goals = _count_occurrences(player, result.scorers)
        if goals:
            if is_only_one:
                breakdown[BonusKind.MATCHED_SCORER_ALONE] = SCORER_ALONE_POINTS * goals
            else:
                breakdown[BonusKind.MATCHED_SCORER] = SCORER_POINTS * goals

        assists = _count_occurrences(player, result.assists)
        if assists:
            if is_only_one:
                breakdown[BonusKind.MATCHED_ASSIST_ALONE] = ASSIST_ALONE_POINTS * assists
            else:
                breakdown[BonusKind.MATCHED_ASSIST] = ASSIST_POINTS * assists

    return PredictionScore(points=sum(breakdown.values()), breakdown=breakdown)
