"""Unit tests for prediction population counts."""

from types import SimpleNamespace

from app.utils.frequency import build_prediction_counts, score_key, summarize_predictions


def _prediction(home, away, player=None):
    return SimpleNamespace(predicted_home=home, predicted_away=away, predicted_player=player)


class TestBuildPredictionCounts:
    """Tests for build_prediction_counts."""

    def test_counts_scores(self):
        score_counts, _ = build_prediction_counts(
            [_prediction(2, 1), _prediction(2, 1), _prediction(1, 0)]
        )
        assert score_counts[score_key(2, 1)] == 2
        assert score_counts[score_key(1, 0)] == 1
        assert score_counts[score_key(3, 3)] == 0

    def test_aliases_share_one_player_count(self):
        _, player_counts = build_prediction_counts(
            [_prediction(1, 0, "Vinicius"), _prediction(2, 0, "vina"), _prediction(1, 1, "PH")]
        )
        assert player_counts["vina"] == 2
        assert player_counts["pedro henrique"] == 1

    def test_blank_players_are_not_counted(self):
        _, player_counts = build_prediction_counts(
            [_prediction(1, 0), _prediction(1, 0, "  "), _prediction(1, 0, "")]
        )
        assert not player_counts

    def test_empty_population(self):
        score_counts, player_counts = build_prediction_counts([])
        assert not score_counts
        assert not player_counts


class TestSummarizePredictions:
    """Tests for summarize_predictions."""

    def test_no_predictions(self):
        assert summarize_predictions([]) == {
            "total_predictions": 0,
            "most_predicted_score": None,
            "top_players": [],
        }

    def test_most_predicted_score_and_players(self):
        summary = summarize_predictions(
            [
                _prediction(2, 1, "Vinicius"),
                _prediction(2, 1, "Vina"),
                _prediction(1, 0, "Ronaldo"),
            ]
        )

        assert summary["total_predictions"] == 3
        assert summary["most_predicted_score"] == {"home": 2, "away": 1, "count": 2}
        assert summary["top_players"] == [
            {"player": "Vinicius", "count": 2},
            {"player": "Ronaldo", "count": 1},
        ]

    def test_top_players_limit(self):
        predictions = [_prediction(1, 0, f"Player {i}") for i in range(8)]
        summary = summarize_predictions(predictions, top_players=3)
        assert len(summary["top_players"]) == 3
