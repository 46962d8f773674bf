from datetime import datetime, timezone

from app import db
from app.exceptions import PreconditionError, ValidationError
from app.utils.scoring import has_scorer_match, validate_score

MAX_PLAYER_NAME_LENGTH = 100


def validate_prediction(predicted_home, predicted_away, predicted_player=None):
    """Validate a predicted score and player name before it is stored"""
    validate_score(predicted_home, predicted_away, "predicted score")

    # The home side may only be predicted to win or draw
    if predicted_home < predicted_away:
        raise ValidationError("You can only predict a home win or a draw")

    if predicted_player is not None:
        if not isinstance(predicted_player, str):
            raise ValidationError("predicted player must be a name")
        if len(predicted_player.strip()) > MAX_PLAYER_NAME_LENGTH:
            raise ValidationError(
                f"predicted player cannot be longer than {MAX_PLAYER_NAME_LENGTH} characters"
            )


class Prediction(db.Model):
    __tablename__ = "predictions"

    id = db.Column(db.Integer, primary_key=True)

    # Prediction identification
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    fixture_id = db.Column(db.Integer, db.ForeignKey("fixtures.id"), nullable=False)

    # Prediction details
    predicted_home = db.Column(db.Integer, nullable=False)
    predicted_away = db.Column(db.Integer, nullable=False)
    predicted_player = db.Column(db.String(MAX_PLAYER_NAME_LENGTH))

    # Results (calculated by the ledger after the fixture concludes)
    points_earned = db.Column(db.Integer)
    breakdown = db.Column(db.JSON)
    calculated_at = db.Column(db.DateTime)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint("user_id", "fixture_id", name="unique_user_fixture_prediction"),
        db.CheckConstraint(
            "predicted_home >= 0 AND predicted_away >= 0", name="non_negative_prediction"
        ),
        db.CheckConstraint(
            "predicted_home >= predicted_away", name="home_win_or_draw_prediction"
        ),
        db.Index("idx_prediction_fixture", "fixture_id"),
        db.Index("idx_prediction_user", "user_id"),
    )

    def __repr__(self):
        return (
            f"<Prediction user_id={self.user_id} fixture_id={self.fixture_id} "
            f"{self.predicted_home}-{self.predicted_away}>"
        )

    @property
    def is_scored(self):
        return self.points_earned is not None

    @property
    def has_scorer_match(self):
        return has_scorer_match(self.breakdown)

    @staticmethod
    def create_prediction(user_id, fixture, predicted_home, predicted_away, predicted_player=None):
        """Create a new prediction with validation"""
        validate_prediction(predicted_home, predicted_away, predicted_player)

        if not fixture.is_open():
            raise PreconditionError("This fixture is no longer accepting predictions")

        existing = Prediction.query.filter_by(user_id=user_id, fixture_id=fixture.id).first()
        if existing:
            raise PreconditionError("You already have a prediction for this fixture")

        prediction = Prediction(
            user_id=user_id,
            fixture_id=fixture.id,
            predicted_home=predicted_home,
            predicted_away=predicted_away,
            predicted_player=(predicted_player or "").strip() or None,
        )
        db.session.add(prediction)
        return prediction

    def to_dict(self):
        """Convert prediction to dictionary for API responses"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "fixture_id": self.fixture_id,
            "predicted_score": {"home": self.predicted_home, "away": self.predicted_away},
            "predicted_player": self.predicted_player,
            "points_earned": self.points_earned,
            "breakdown": self.breakdown,
            "calculated_at": self.calculated_at.isoformat() if self.calculated_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
