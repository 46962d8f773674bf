"""
Population counts for a fixture's predictions.

Uniqueness bonuses compare each prediction against every other prediction
for the same fixture, so the counts must be built from the complete set
before the first prediction is scored.
"""

from collections import Counter

from app.utils.names import normalize_player_name


def score_key(home, away):
    """Key identifying a predicted score, e.g. ``"2-1"``"""
    return f"{home}-{away}"


def build_prediction_counts(predictions):
    """
    Count how many predictions share each score and each player.

    Args:
        predictions: every prediction for one fixture

    Returns:
        tuple: (score_counts, player_counts) keyed by ``score_key`` and by
        the normalized player name; predictions without a player are left
        out of ``player_counts``
    """
    score_counts = Counter()
    player_counts = Counter()

    for prediction in predictions:
        score_counts[score_key(prediction.predicted_home, prediction.predicted_away)] += 1

        player = normalize_player_name(prediction.predicted_player)
        if player:
            player_counts[player] += 1

    return score_counts, player_counts


def summarize_predictions(predictions, top_players=5):
    """Get prediction statistics for a fixture (most picked score, popular players)"""
    predictions = list(predictions)
    if not predictions:
        return {"total_predictions": 0, "most_predicted_score": None, "top_players": []}

    score_counts, player_counts = build_prediction_counts(predictions)

    # Counter.most_common keeps first-seen order for ties
    (top_key, top_count), = score_counts.most_common(1)
    home, away = (int(part) for part in top_key.split("-"))

    # Report each player under the first spelling somebody used
    display_names = {}
    for prediction in predictions:
        key = normalize_player_name(prediction.predicted_player)
        if key and key not in display_names:
            display_names[key] = prediction.predicted_player.strip()

    return {
        "total_predictions": len(predictions),
        "most_predicted_score": {"home": home, "away": away, "count": top_count},
        "top_players": [
            {"player": display_names[key], "count": count}
            for key, count in player_counts.most_common(top_players)
        ],
    }
