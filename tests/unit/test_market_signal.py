"""Unit tests for the market signal composite scorer."""

import pytest

from linewatch.services.scoring.market_signal import (
    NEUTRAL_CONSENSUS,
    MarketSignalEngine,
    MarketSignalInput,
    MarketSignalWeights,
    consensus_score,
    juice_move_score,
    line_move_score,
    public_fade_score,
    timing_score,
)


class TestMarketSignalEngine:
    """Test the MarketSignalEngine class."""

    def setup_method(self):
        self.engine = MarketSignalEngine()

    def test_missing_confirming_books_uses_neutral_default(self):
        """A record without confirming_books scores consensus at 40, not an error."""
        result = self.engine.score(MarketSignalInput(event_id="evt1", outcome_name="Celtics"))

        assert result.multi_book_consensus_score == NEUTRAL_CONSENSUS == 40
        assert result.line_move_score == 50
        assert result.juice_move_score == 50
        assert result.timing_sharpness_score == 50
        assert result.public_fade_score == 50
        assert result.market_score == 49
        assert result.signal_label == "neutral"
        assert result.rationale == "Neutral market activity with no clear directional signal"

    def test_sharp_aligned_move(self):
        """Line and juice moving together early across 5 books against the public."""
        result = self.engine.score(
            MarketSignalInput(
                event_id="evt1",
                outcome_name="Knicks -5",
                opening_point=-3,
                current_point=-5,
                opening_price=-110,
                current_price=-125,
                hours_to_game=18,
                confirming_books=5,
                public_side="home",
                line_direction="away",
            )
        )

        assert result.line_move_score == 100
        assert result.juice_move_score == 90
        assert result.timing_sharpness_score == 100
        assert result.multi_book_consensus_score == 100
        assert result.public_fade_score == 95
        assert result.market_score == 97
        assert result.signal_label == "sharp_aligned"
        assert result.rationale.startswith("Line moved 2.0 pts down; across 5 books")
        assert "juice drift confirms sharp buying" in result.rationale
        assert "line moving against public" in result.rationale

    def test_price_drift_with_public_is_trap_risk(self):
        result = self.engine.score(
            MarketSignalInput(
                event_id="evt2",
                outcome_name="Lakers",
                opening_point=-3,
                current_point=-3,
                opening_price=-110,
                current_price=-130,
                hours_to_game=0.5,
                confirming_books=1,
                public_side="home",
                line_direction="home",
            )
        )

        assert result.line_move_score == 25
        assert result.juice_move_score == 25
        assert result.timing_sharpness_score == 45
        assert result.multi_book_consensus_score == 30
        assert result.public_fade_score == 25
        assert result.market_score == 29
        assert result.signal_label == "trap_risk"
        assert "without line adjustment suggests public pressure" in result.rationale
        assert "line moving with public (trap risk)" in result.rationale

    def test_more_confirming_books_never_lower_score(self):
        scores = [
            self.engine.score(
                MarketSignalInput(event_id="evt1", outcome_name="Celtics", confirming_books=books)
            ).market_score
            for books in range(6)
        ]
        assert scores == sorted(scores)
        assert scores[0] < scores[-1]

    def test_larger_line_move_never_lowers_score(self):
        scores = [
            self.engine.score(
                MarketSignalInput(
                    event_id="evt1",
                    outcome_name="Knicks",
                    opening_point=-3,
                    current_point=current,
                    opening_price=-110,
                    current_price=-120,
                    hours_to_game=10,
                    confirming_books=3,
                )
            ).market_score
            for current in (-3, -3.1, -3.25, -3.5, -4, -4.5, -5, -6)
        ]
        assert scores == sorted(scores)
        assert scores[0] < scores[-1]

    def test_score_clamped(self):
        engine = MarketSignalEngine(MarketSignalWeights(line_move=2.0))
        result = engine.score(
            MarketSignalInput(event_id="e", outcome_name="o", opening_point=1, current_point=4)
        )
        assert result.market_score == 100

    @pytest.mark.parametrize(
        "score,label",
        [(100, "sharp_aligned"), (70, "sharp_aligned"), (69, "neutral"), (40, "neutral"), (39, "trap_risk")],
    )
    def test_labels(self, score, label):
        assert self.engine.label(score) == label

    def test_weight_overrides(self):
        weights = MarketSignalWeights().with_overrides({"line_move": "0.5", "bogus": 1, "public_fade": None})
        assert weights.line_move == 0.5
        assert weights.public_fade == 0.15


class TestComponentScores:
    """Component score boundaries."""

    @pytest.mark.parametrize(
        "opening,current,expected",
        [(-3, -5, 100), (-3, -4.5, 85), (-3, -4, 70), (-3, -3.5, 55), (-3, -3.25, 40), (-3, -3.1, 25), (None, -3, 50)],
    )
    def test_line_move_score(self, opening, current, expected):
        assert line_move_score(opening, current) == expected

    def test_zero_point_counts_as_missing(self):
        assert line_move_score(0, -2.5) == 50

    def test_juice_move_score(self):
        assert juice_move_score(-110, -130, line_changed=False) == 25
        assert juice_move_score(-110, -125, line_changed=False) == 35
        assert juice_move_score(-110, -120, line_changed=False) == 45
        assert juice_move_score(-110, -125, line_changed=True) == 90
        assert juice_move_score(-110, -120, line_changed=True) == 80
        assert juice_move_score(-110, -115, line_changed=True) == 70
        assert juice_move_score(-110, -112, line_changed=True) == 55
        assert juice_move_score(None, -112, line_changed=True) == 50

    @pytest.mark.parametrize(
        "hours,expected",
        [(None, 50), (0, 50), (0.5, 45), (1, 65), (4, 75), (8, 85), (12, 100), (24, 100), (30, 70), (72, 50)],
    )
    def test_timing_score(self, hours, expected):
        assert timing_score(hours) == expected

    @pytest.mark.parametrize(
        "books,expected",
        [(None, 40), (float("nan"), 40), (0, 30), (1, 30), (2, 55), (3, 70), (4, 85), (6, 100)],
    )
    def test_consensus_score(self, books, expected):
        assert consensus_score(books) == expected

    def test_public_fade_score(self):
        assert public_fade_score(None, "away") == 50
        assert public_fade_score("home", "away") == 95
        assert public_fade_score("home", "home") == 25
