"""Integration tests for season rollover and deletion."""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.exceptions import NotFoundError, PartialCommitError, PreconditionError, ValidationError
from app.models import Fixture, Prediction, Season, User
from app.services import ledger, seasons
from app.services.batch import WriteBatch
from app.utils.scoring import FixtureResult


def _reload(model, ident):
    db.session.expire_all()
    return db.session.get(model, ident)


@pytest.fixture
def standings_users(make_user):
    return {
        "carol": make_user("carol", total_points=5),
        "bob": make_user("bob", total_points=10),
        "alice": make_user("alice", total_points=10),
        "dave": make_user("dave", total_points=0),
    }


class TestCreateSeason:
    def test_only_one_active_season(self, season):
        with pytest.raises(PreconditionError):
            seasons.create_season("Another")

    def test_name_required(self, app):
        with pytest.raises(ValidationError):
            seasons.create_season("   ")

    def test_new_season_after_end(self, season):
        seasons.end_season(season.id)

        new_season = seasons.create_season(" 2027 ")

        assert new_season.name == "2027"
        assert Season.get_active_season().id == new_season.id


class TestStandings:
    def test_ties_broken_by_username(self, standings_users):
        standings = seasons.build_standings()

        assert [(e["username"], e["points"], e["rank"]) for e in standings] == [
            ("alice", 10, 1),
            ("bob", 10, 2),
            ("carol", 5, 3),
            ("dave", 0, 4),
        ]

    def test_cached_standings_match(self, standings_users):
        assert seasons.get_cached_standings() == seasons.build_standings()


class TestEndSeason:
    """Snapshot, medals and reset."""

    def test_snapshot_and_reset(self, season, standings_users):
        rankings = seasons.end_season(season.id)

        assert [(e["username"], e["points"], e["rank"]) for e in rankings] == [
            ("alice", 10, 1),
            ("bob", 10, 2),
            ("carol", 5, 3),
            ("dave", 0, 4),
        ]

        stored = _reload(Season, season.id)
        assert stored.is_ended
        assert stored.end_date is not None
        assert stored.final_rankings == rankings
        assert all(user.total_points == 0 for user in User.query.all())

    def test_medals_for_the_podium(self, season, standings_users):
        seasons.end_season(season.id)

        alice = _reload(User, standings_users["alice"].id)
        bob = _reload(User, standings_users["bob"].id)
        carol = _reload(User, standings_users["carol"].id)
        dave = _reload(User, standings_users["dave"].id)
        assert (alice.gold_medals, alice.silver_medals, alice.bronze_medals) == (1, 0, 0)
        assert (bob.gold_medals, bob.silver_medals, bob.bronze_medals) == (0, 1, 0)
        assert (carol.gold_medals, carol.silver_medals, carol.bronze_medals) == (0, 0, 1)
        assert (dave.gold_medals, dave.silver_medals, dave.bronze_medals) == (0, 0, 0)

    def test_scorer_credit_survives(self, season, make_fixture, make_user, make_prediction):
        user = make_user("alice")
        fixture = make_fixture(season)
        make_prediction(user, fixture, 1, 0, "Vina")
        ledger.set_result(fixture.id, FixtureResult(1, 0, scorers=["Vina"]))

        seasons.end_season(season.id)

        user = _reload(User, user.id)
        assert user.total_points == 0
        assert user.scorer_match_count == 1

    def test_supplied_rankings(self, season, standings_users):
        bob = standings_users["bob"]
        rankings = seasons.end_season(
            season.id,
            [{"user_id": bob.id, "username": "bob", "points": 10, "rank": 1}],
        )

        assert rankings == [{"user_id": bob.id, "username": "bob", "points": 10, "rank": 1}]
        assert _reload(User, bob.id).gold_medals == 1
        assert all(user.total_points == 0 for user in User.query.all())

    @pytest.mark.parametrize(
        "final_rankings",
        [
            "alice",
            [{"user_id": 999, "points": 1, "rank": 1}],
            [{"user_id": None, "points": 1, "rank": 1}],
            [{"user_id": 1, "points": 1, "rank": 0}],
            [{"user_id": 1, "points": 1, "rank": 1}, {"user_id": 1, "points": 1, "rank": 2}],
        ],
    )
    def test_rejects_bad_rankings(self, season, standings_users, final_rankings):
        with pytest.raises(ValidationError):
            seasons.end_season(season.id, final_rankings)

        assert _reload(Season, season.id).is_active

    def test_resume_after_partial_reset(self, app, monkeypatch, season, standings_users):
        app.config["LEDGER_BATCH_SIZE"] = 2
        original = WriteBatch._execute_chunk
        calls = []

        def flaky(self, statements):
            calls.append(len(statements))
            if len(calls) == 2:
                raise SQLAlchemyError("connection lost")
            return original(self, statements)

        monkeypatch.setattr(WriteBatch, "_execute_chunk", flaky)
        with pytest.raises(PartialCommitError) as excinfo:
            seasons.end_season(season.id)
        assert excinfo.value.committed_chunks == 1

        # Snapshot and medals landed in the first chunk
        assert _reload(Season, season.id).is_ended
        assert _reload(User, standings_users["alice"].id).total_points == 10

        monkeypatch.undo()
        rankings = seasons.end_season(season.id)

        assert rankings == _reload(Season, season.id).final_rankings
        assert rankings[0]["username"] == "alice"
        assert all(user.total_points == 0 for user in User.query.all())
        assert _reload(User, standings_users["alice"].id).gold_medals == 1

    def test_resume_refused_once_next_season_is_active(self, season, standings_users):
        seasons.end_season(season.id)
        seasons.create_season("2027")

        with pytest.raises(PreconditionError):
            seasons.end_season(season.id)

    def test_unknown_season(self, app):
        with pytest.raises(NotFoundError):
            seasons.end_season(42)


class TestDeleteSeason:
    def test_reverses_every_fixture(self, season, make_fixture, make_user, make_prediction):
        alice, bob = make_user("alice"), make_user("bob")
        first, second = make_fixture(season), make_fixture(season)
        make_prediction(alice, first, 1, 0)
        make_prediction(bob, first, 2, 0)
        make_prediction(alice, second, 1, 1, "Vina")
        ledger.set_result(first.id, FixtureResult(1, 0))
        ledger.set_result(second.id, FixtureResult(1, 1, scorers=["Vina"]))
        assert _reload(User, alice.id).total_points == 4 + 8

        season_id = season.id
        summaries = seasons.delete_season(season_id)

        assert len(summaries) == 2
        assert sum(summary.points_delta for summary in summaries) == -(4 + 1 + 8)
        assert _reload(Season, season_id) is None
        assert Fixture.query.count() == 0
        assert Prediction.query.count() == 0
        assert _reload(User, alice.id).total_points == 0
        assert _reload(User, alice.id).scorer_match_count == 0
        assert _reload(User, bob.id).total_points == 0
        assert ledger.audit_ledger() == []

    def test_partial_deletion_then_retry(
        self, monkeypatch, season, make_fixture, make_user, make_prediction
    ):
        alice, bob = make_user("alice"), make_user("bob")
        first, second = make_fixture(season), make_fixture(season)
        make_prediction(alice, first, 1, 0)
        make_prediction(bob, second, 2, 0, "Vina")
        ledger.set_result(first.id, FixtureResult(1, 0))
        ledger.set_result(second.id, FixtureResult(2, 0, scorers=["Vina"]))
        season_id = season.id

        # Each fixture deletion is a single chunk; the second one fails
        original = WriteBatch._execute_chunk
        calls = []

        def flaky(self, statements):
            calls.append(len(statements))
            if len(calls) == 2:
                raise SQLAlchemyError("connection lost")
            return original(self, statements)

        monkeypatch.setattr(WriteBatch, "_execute_chunk", flaky)
        with pytest.raises(PartialCommitError):
            seasons.delete_season(season_id)

        assert _reload(Season, season_id) is not None
        assert Fixture.query.count() == 1
        assert ledger.audit_ledger() == []

        monkeypatch.undo()
        summaries = seasons.delete_season(season_id)

        assert len(summaries) == 1
        assert _reload(Season, season_id) is None
        assert Fixture.query.count() == 0
        assert Prediction.query.count() == 0
        assert _reload(User, alice.id).total_points == 0
        assert _reload(User, bob.id).total_points == 0
        assert _reload(User, bob.id).scorer_match_count == 0
        assert ledger.audit_ledger() == []

    def test_empty_season(self, season):
        season_id = season.id

        assert seasons.delete_season(season_id) == []
        assert _reload(Season, season_id) is None
