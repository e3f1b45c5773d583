"""Unit tests for the sharp pressure / trap pressure engine.

The worked example (20 cent move, 1 point line move, 2h out, 4 of 5 books)
must land well inside SHARP territory:

    SP  = 0.7 x 1.25 x 40 + (25 + 20 + 15 + 20 + 10 + 10) = 135
    TP  = 0.6 x 0.5 x 25 = 7.5
    SES = 127.5 -> sharp_pct 99
"""

import math

import pytest

from linewatch.services.scoring.sharp import (
    MovementInput,
    SharpEngine,
    SharpEngineConfig,
    analyze_movement,
    round_half_up,
)


class TestSharpEngine:
    """Test the SharpEngine class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.engine = SharpEngine()

    def test_late_steam_example(self, sample_movements):
        """Line and juice moving together in the late window is sharp."""
        result = self.engine.analyze(sample_movements["late_steam"])

        assert result.sp_move == 35.0
        assert result.sp_signals == 100.0
        assert result.sharp_pressure == 135.0
        assert result.tp_noise == 7.5
        assert result.tp_trap == 0.0
        assert result.ses == 127.5
        assert result.sharp_pct == 99
        assert result.label == "SHARP"
        assert result.recommendation == "pick"
        assert result.authenticity == "real"
        assert result.sharp_signals == [
            "LINE_AND_JUICE_MOVED",
            "STEAM_MOVE_DETECTED",
            "LATE_MONEY_WINDOW",
            "MARKET_CONSENSUS_HIGH",
            "CLV_POSITIVE",
            "SINGLE_SIDE_MOVEMENT",
        ]
        assert result.trap_signals == []

    def test_price_only_trap(self, sample_movements):
        """Juice-only favourite shortening with both sides moving is a trap."""
        result = self.engine.analyze(sample_movements["price_only_trap"])

        assert result.ses == -98.2
        assert result.sharp_pct == 2
        assert result.label == "TRAP"
        assert result.recommendation == "fade"
        assert "PRICE_ONLY_MOVE" in result.trap_signals
        assert "BOTH_SIDES_MOVED" in result.trap_signals
        assert "FAVORITE_SHORTENING" in result.trap_signals
        # Shortening favourite suppresses the extreme juice warning
        assert "EXTREME_JUICE_WARNING" not in result.trap_signals

    def test_empty_movement_uses_defaults(self, sample_movements):
        """A movement with no fields scores with neutral defaults instead of raising."""
        result = self.engine.analyze(sample_movements["empty"])

        assert result.movement_bucket == "minimal"
        assert result.time_weight == 0.6
        assert result.ses == -77.6
        assert result.label == "TRAP"
        assert result.trap_signals == [
            "EARLY_MORNING_ACTION",
            "INSIGNIFICANT_MOVEMENT",
            "ISOLATED_SIGNAL",
        ]

    def test_nan_inputs_treated_as_missing(self, sample_movements):
        nan = float("nan")
        movement = MovementInput(
            price_change=nan,
            line_change=nan,
            hours_to_game=nan,
            books_count=None,
            total_books=None,
            current_price=nan,
            opening_price=nan,
        )
        result = self.engine.analyze(movement)
        baseline = self.engine.analyze(sample_movements["empty"])

        assert result.ses == baseline.ses
        assert result.sharp_pct == baseline.sharp_pct
        assert not math.isnan(result.ses)

    def test_negative_hours_clamped(self):
        result = self.engine.analyze(MovementInput(price_change=12, hours_to_game=-3))
        assert result.time_weight == self.engine.config.tw_early

    def test_to_dict_contains_breakdown(self, sample_movements):
        data = self.engine.analyze(sample_movements["late_steam"]).to_dict()

        for key in ("SP", "TP", "SES", "sharpPct", "MW", "TW", "label", "allSignals"):
            assert key in data
        assert data["engineVersion"] == "sharp-engine-v2"
        assert data["signalPoints"]["LINE_AND_JUICE_MOVED"] == 25

    def test_to_dict_keys_camel_case(self, sample_movements):
        data = self.engine.analyze(sample_movements["late_steam"]).to_dict()
        formula_terms = {"SP", "SP_move", "SP_signals", "TP", "TP_noise", "TP_trap", "SES", "MW", "TW"}

        assert data["sharpPct"] == 99
        assert data["movementBucket"] == "moderate"
        assert data["openingSide"] == "pick_em"
        assert data["consensusRatio"] == 0.8
        for key in set(data) - formula_terms:
            assert "_" not in key and key[0].islower()

    @pytest.mark.parametrize(
        "price_change,fires",
        [(9.9, False), (10, True), (29.9, True), (30, False), (-45, False)],
    )
    def test_single_side_only_for_moderate_moves(self, price_change, fires):
        result = self.engine.analyze(MovementInput(price_change=price_change, hours_to_game=5))
        assert ("SINGLE_SIDE_MOVEMENT" in result.sharp_signals) is fires


class TestBuckets:
    """Movement buckets and time weights."""

    def setup_method(self):
        self.engine = SharpEngine()

    @pytest.mark.parametrize(
        "price_change,bucket",
        [
            (50, "extreme"),
            (-75, "extreme"),
            (49.9, "large"),
            (30, "large"),
            (15, "moderate"),
            (-10, "small"),
            (9, "minimal"),
            (0, "minimal"),
        ],
    )
    def test_movement_bucket(self, price_change, bucket):
        assert self.engine.movement_bucket(price_change) == bucket

    @pytest.mark.parametrize(
        "hours,weight",
        [
            (0.5, 0.6),
            (1, 1.25),
            (3, 1.25),
            (3.5, 1.0),
            (6, 1.0),
            (6.5, 0.6),
            (48, 0.6),
        ],
    )
    def test_time_weight(self, hours, weight):
        assert self.engine.time_weight(hours) == weight

    def test_price_direction_dead_zone(self):
        assert self.engine.price_direction(-110, -105) == "neutral"
        assert self.engine.price_direction(-130, -110) == "toward_favorite"
        assert self.engine.price_direction(120, 105) == "toward_underdog"

    def test_opening_side(self):
        assert self.engine.opening_side(-150) == "heavy_favorite"
        assert self.engine.opening_side(-120) == "slight_favorite"
        assert self.engine.opening_side(-110) == "pick_em"
        assert self.engine.opening_side(130) == "slight_underdog"
        assert self.engine.opening_side(150) == "heavy_underdog"


class TestClassification:
    """Label cutoffs and the logistic mapping."""

    def setup_method(self):
        self.engine = SharpEngine()

    def test_pick_cutoffs_inclusive(self):
        assert self.engine.classify(30, 65) == ("SHARP", "pick")
        assert self.engine.classify(29.99, 99) == ("CAUTION", "caution")
        assert self.engine.classify(30, 64) == ("CAUTION", "caution")

    def test_fade_cutoffs_inclusive(self):
        assert self.engine.classify(-30, 35) == ("TRAP", "fade")
        assert self.engine.classify(-29.99, 1) == ("CAUTION", "caution")
        assert self.engine.classify(-30, 36) == ("CAUTION", "caution")

    def test_probability_bounds(self):
        assert self.engine.logistic_pct(0) == 50
        assert self.engine.logistic_pct(1e6) == 100
        assert self.engine.logistic_pct(-1e6) == 0

    def test_probability_monotonic_in_ses(self):
        values = [self.engine.logistic_pct(ses) for ses in range(-200, 201, 5)]
        assert values == sorted(values)
        assert all(0 <= v <= 100 for v in values)

    def test_more_signals_never_lower_score(self):
        """Adding a sharp signal (multi-market alignment) raises SES."""
        base = MovementInput(price_change=12, line_change=0.5, hours_to_game=5)
        aligned = MovementInput(
            price_change=12, line_change=0.5, hours_to_game=5, multi_market_aligned=True
        )
        assert self.engine.analyze(aligned).ses > self.engine.analyze(base).ses

    def test_more_books_never_lower_score(self):
        """From zero to every book, a wider consensus never lowers SES."""
        results = [
            self.engine.analyze(
                MovementInput(
                    price_change=12,
                    line_change=0.5,
                    hours_to_game=5,
                    books_count=books,
                    total_books=5,
                )
            )
            for books in range(6)
        ]
        seses = [r.ses for r in results]

        assert seses == sorted(seses)
        assert "ISOLATED_SIGNAL" in results[0].trap_signals
        assert "ISOLATED_SIGNAL" in results[1].trap_signals
        assert "ISOLATED_SIGNAL" not in results[2].trap_signals

    def test_larger_line_move_never_lowers_score(self):
        """Juice toward the favourite with a growing line move."""
        seses = [
            self.engine.analyze(
                MovementInput(
                    price_change=-12,
                    line_change=line,
                    hours_to_game=5,
                    books_count=3,
                    total_books=5,
                    current_price=-122,
                    opening_price=-110,
                )
            ).ses
            for line in (0, 0.25, 0.5, 1.0, 1.5, 2.0, 3.0)
        ]
        assert seses == sorted(seses)
        assert seses[-1] > seses[0]

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(-2.5) == -2
        assert round_half_up(99.39) == 99


class TestConfig:
    """Config overrides."""

    def test_with_overrides_uppercase_keys(self):
        config = SharpEngineConfig().with_overrides(
            {"BASE_MOVE_SHARP": 50, "TW_LATE": "1.5", "UNKNOWN_KEY": 3}
        )
        assert config.base_move_sharp == 50
        assert config.tw_late == 1.5
        assert not hasattr(config, "unknown_key")

    def test_with_overrides_ignores_garbage(self):
        base = SharpEngineConfig()
        config = base.with_overrides({"LOGISTIC_K": "abc", "BASE_NOISE": float("nan")})
        assert config == base

    def test_overrides_change_score(self, sample_movements):
        config = SharpEngineConfig().with_overrides({"SIGNAL_STEAM_MOVE": 0})
        default = SharpEngine().analyze(sample_movements["late_steam"])
        tuned = SharpEngine(config).analyze(sample_movements["late_steam"])
        assert default.ses - tuned.ses == 20

    def test_to_dict_keys_uppercase(self):
        data = SharpEngineConfig().to_dict()
        assert data["PICK_SES_THRESHOLD"] == 30
        assert all(key.isupper() for key in data)

    def test_analyze_movement_accepts_mapping(self):
        result = analyze_movement(
            {
                "price_change": 20,
                "line_change": 1,
                "hours_to_game": 2,
                "books_count": 4,
                "total_books": 5,
                "current_price": -110,
                "opening_price": -105,
                "not_a_field": True,
            }
        )
        assert result.ses == 127.5
