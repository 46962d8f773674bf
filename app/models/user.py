from datetime import datetime, timezone

from app import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)

    # Profile information
    display_name = db.Column(db.String(100))
    is_admin = db.Column(db.Boolean, default=False)

    # Running total for the active season, maintained by the ledger.
    # Only ever changed by relative increments (and the season reset).
    total_points = db.Column(db.Integer, nullable=False, default=0)

    # Lifetime statistics, never reset at season end
    scorer_match_count = db.Column(db.Integer, nullable=False, default=0)
    gold_medals = db.Column(db.Integer, nullable=False, default=0)
    silver_medals = db.Column(db.Integer, nullable=False, default=0)
    bronze_medals = db.Column(db.Integer, nullable=False, default=0)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    last_updated = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    predictions = db.relationship("Prediction", backref="user", lazy="dynamic")

    # Database indexes and constraints
    __table_args__ = (
        db.Index("idx_user_points_username", "total_points", "username"),
    )

    def __repr__(self):
        return f"<User {self.username}>"

    @property
    def full_name(self):
        """Return display name or username"""
        return self.display_name or self.username

    @staticmethod
    def create_user(username, email, display_name=None, is_admin=False):
        """Create a new user with zeroed counters"""
        user = User(
            username=username,
            email=email,
            display_name=display_name,
            is_admin=is_admin,
            total_points=0,
            scorer_match_count=0,
        )
        db.session.add(user)
        return user

    @staticmethod
    def get_ranking(limit=None):
        """All users ordered by points, ties broken by username"""
        query = User.query.order_by(User.total_points.desc(), User.username.asc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.full_name,
            "is_admin": self.is_admin,
            "total_points": self.total_points,
            "scorer_match_count": self.scorer_match_count,
            "medals": {
                "gold": self.gold_medals,
                "silver": self.silver_medals,
                "bronze": self.bronze_medals,
            },
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
