from datetime import datetime, timezone

from app import db
from app.exceptions import PreconditionError


class Season(db.Model):
    __tablename__ = "seasons"

    STATUS_ACTIVE = "active"
    STATUS_ENDED = "ended"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)

    # Season dates
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime)

    # Status
    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE)

    # Standings snapshot written once when the season ends
    final_rankings = db.Column(db.JSON)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    fixtures = db.relationship("Fixture", backref="season", lazy="dynamic")

    # Database indexes and constraints
    __table_args__ = (
        # At most one active season system-wide
        db.Index(
            "uq_season_single_active",
            "status",
            unique=True,
            sqlite_where=db.text("status = 'active'"),
            postgresql_where=db.text("status = 'active'"),
        ),
        db.CheckConstraint(
            "status IN ('active', 'ended')", name="valid_season_status"
        ),
    )

    def __repr__(self):
        return f"<Season {self.name} ({self.status})>"

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE

    @property
    def is_ended(self):
        return self.status == self.STATUS_ENDED

    @staticmethod
    def get_active_season():
        """Get the currently active season"""
        return Season.query.filter_by(status=Season.STATUS_ACTIVE).first()

    @staticmethod
    def create_season(name, start_date=None):
        """Create a new active season (only one may be active at a time)"""
        active = Season.get_active_season()
        if active:
            raise PreconditionError(
                f"There is already an active season: {active.name} (ID: {active.id}). "
                "End or delete it before creating a new one."
            )

        season = Season(
            name=name,
            start_date=start_date or datetime.now(timezone.utc),
            status=Season.STATUS_ACTIVE,
        )
        db.session.add(season)
        return season

    def to_dict(self, include_rankings=True):
        """Convert season to dictionary for API responses"""
        data = {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }
        if include_rankings:
            data["final_rankings"] = self.final_rankings
        return data
