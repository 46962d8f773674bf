"""Shared fixtures for prediction pool tests."""

from datetime import datetime, timedelta, timezone

import pytest

from app import cache, create_app, db
from app.models import Fixture, Prediction, Season, User


@pytest.fixture
def app():
    """Application bound to a fresh in-memory database."""
    app = create_app("testing")
    ctx = app.app_context()
    ctx.push()

    yield app

    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(username, total_points=0):
        user = User.create_user(username, f"{username}@example.com")
        user.total_points = total_points
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def season(app):
    season = Season.create_season("2026")
    db.session.commit()
    return season


@pytest.fixture
def make_fixture(app):
    def _make_fixture(season, home_team="Home FC", away_team="Away FC"):
        fixture = Fixture.create_fixture(
            season,
            home_team,
            away_team,
            datetime.now(timezone.utc) + timedelta(days=1),
        )
        db.session.commit()
        return fixture

    return _make_fixture


@pytest.fixture
def make_prediction(app):
    def _make_prediction(user, fixture, home, away, player=None):
        prediction = Prediction.create_prediction(user.id, fixture, home, away, player)
        db.session.commit()
        return prediction

    return _make_prediction


@pytest.fixture
def standings_cache(app):
    """Swap the NullCache for a real in-process cache"""
    cache.init_app(app, config={"CACHE_TYPE": "SimpleCache"})
    cache.clear()
    return cache
