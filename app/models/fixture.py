from datetime import datetime, timezone

from app import db
from app.utils.scoring import FixtureResult


class Fixture(db.Model):
    __tablename__ = "fixtures"

    STATUS_OPEN = "open"
    STATUS_LOCKED = "locked"
    STATUS_FINISHED = "finished"
    STATUSES = (STATUS_OPEN, STATUS_LOCKED, STATUS_FINISHED)

    id = db.Column(db.Integer, primary_key=True)
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)

    # Teams
    home_team = db.Column(db.String(100), nullable=False)
    away_team = db.Column(db.String(100), nullable=False)

    # Fixture timing
    match_date = db.Column(db.DateTime, nullable=False)

    # Lifecycle status
    status = db.Column(db.String(20), nullable=False, default=STATUS_OPEN)

    # Result (set by an admin after the final whistle)
    actual_home = db.Column(db.Integer)
    actual_away = db.Column(db.Integer)
    actual_scorers = db.Column(db.JSON)
    actual_assists = db.Column(db.JSON)
    results_set_at = db.Column(db.DateTime)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    predictions = db.relationship("Prediction", backref="fixture", lazy="dynamic")

    # Indexes
    __table_args__ = (
        db.Index("idx_fixture_season_date", "season_id", "match_date"),
        db.CheckConstraint(
            "status IN ('open', 'locked', 'finished')", name="valid_fixture_status"
        ),
    )

    def __repr__(self):
        return f"<Fixture {self.home_team} vs {self.away_team} ({self.status})>"

    @property
    def has_result(self):
        return self.actual_home is not None and self.actual_away is not None

    @property
    def result(self):
        """Stored result as a FixtureResult (None before the fixture concludes)"""
        if not self.has_result:
            return None
        return FixtureResult(
            home=self.actual_home,
            away=self.actual_away,
            scorers=self.actual_scorers,
            assists=self.actual_assists,
        )

    def is_open(self):
        """Check if the fixture still accepts predictions"""
        if self.status != self.STATUS_OPEN:
            return False

        # If match_date is timezone-naive, assume it's in UTC
        match_date = self.match_date
        if match_date.tzinfo is None:
            match_date = match_date.replace(tzinfo=timezone.utc)
        return match_date > datetime.now(timezone.utc)

    @staticmethod
    def create_fixture(season, home_team, away_team, match_date):
        """Create an open fixture in the given season"""
        fixture = Fixture(
            season_id=season.id,
            home_team=home_team,
            away_team=away_team,
            match_date=match_date,
            status=Fixture.STATUS_OPEN,
        )
        db.session.add(fixture)
        return fixture

    def to_dict(self):
        """Convert fixture to dictionary for API responses"""
        return {
            "id": self.id,
            "season_id": self.season_id,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "match_date": self.match_date.isoformat() if self.match_date else None,
            "status": self.status,
            "result": self.result.to_dict() if self.has_result else None,
            "results_set_at": (
                self.results_set_at.isoformat() if self.results_set_at else None
            ),
        }
