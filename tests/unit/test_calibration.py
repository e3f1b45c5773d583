"""Unit tests for sharp signal calibration."""

from linewatch.services.scoring.calibration import (
    GradedMovement,
    calibrate,
    ses_range,
    suggest_weight,
)
from linewatch.services.scoring.sharp import SharpEngineConfig


def graded(correct, sharp=(), trap=(), sport="NBA", recommendation="pick", ses=40.0):
    return GradedMovement(
        sport=sport,
        recommendation=recommendation,
        ses=ses,
        correct=correct,
        sharp_signals=list(sharp),
        trap_signals=list(trap),
    )


class TestCalibrate:
    """Test calibrate() over graded movements."""

    def setup_method(self):
        # 12 steam moves, 9 winners (75%)
        self.movements = [graded(i < 9, sharp=["STEAM_MOVE_DETECTED"]) for i in range(12)]
        # 10 both-sides traps, 8 winners (80%): the trap fires on winners
        self.movements += [
            graded(i < 8, trap=["BOTH_SIDES_MOVED"], recommendation="fade", ses=-45.0, sport="NFL")
            for i in range(10)
        ]
        # Too few samples for a suggestion
        self.movements += [graded(False, sharp=["CLV_POSITIVE"]) for _ in range(5)]

    def test_counts(self):
        report = calibrate(self.movements)

        assert report.movements_analyzed == 27
        assert report.sport_accuracy["NBA"].total == 17
        assert report.sport_accuracy["NFL"].correct == 8
        assert report.recommendation_accuracy["fade"].total == 10
        assert report.ses_range_accuracy["high"].total == 17
        assert report.ses_range_accuracy["low"].total == 10

    def test_signals_sorted_by_accuracy(self):
        report = calibrate(self.movements)
        names = [s.signal for s in report.signal_stats]
        assert names == ["BOTH_SIDES_MOVED", "STEAM_MOVE_DETECTED", "CLV_POSITIVE"]

    def test_sharp_signal_weight_increase(self):
        report = calibrate(self.movements)
        suggestion = report.suggestion_for("STEAM_MOVE_DETECTED")

        assert suggestion is not None
        assert suggestion.config_key == "SIGNAL_STEAM_MOVE"
        assert suggestion.current_weight == 20
        assert suggestion.suggested_weight == 26

    def test_ineffective_trap_weight_halved(self):
        report = calibrate(self.movements)
        suggestion = report.suggestion_for("BOTH_SIDES_MOVED")

        assert suggestion.current_weight == 30
        assert suggestion.suggested_weight == 15
        assert "ineffective trap detection" in suggestion.reason

    def test_small_samples_not_suggested(self):
        report = calibrate(self.movements)
        assert report.suggestion_for("CLV_POSITIVE") is None

    def test_uses_effective_config(self):
        config = SharpEngineConfig().with_overrides({"SIGNAL_STEAM_MOVE": 35})
        report = calibrate(self.movements, config)
        suggestion = report.suggestion_for("STEAM_MOVE_DETECTED")

        # 35 x 1.3 is capped at 40
        assert suggestion.suggested_weight == 40

    def test_report_dict(self):
        data = calibrate(self.movements).to_dict()

        assert data["movements_analyzed"] == 27
        assert {"signal", "type", "total", "correct", "accuracy", "avg_ses"} <= set(
            data["signal_stats"][0]
        )
        assert len(data["ses_range_accuracy"]) == 6
        assert len(data["suggested_weight_changes"]) == 2

    def test_empty(self):
        report = calibrate([])
        assert report.movements_analyzed == 0
        assert report.signal_stats == []
        assert report.suggestions == []


class TestHelpers:
    def test_ses_range(self):
        assert ses_range(-100) == "very_low"
        assert ses_range(-0.1) == "slightly_low"
        assert ses_range(0) == "slightly_high"
        assert ses_range(99.9) == "very_high"
        assert ses_range(100) is None

    def test_suggest_weight_no_change_in_middle(self):
        assert suggest_weight("sharp", 50, 20) == (20, "")
        assert suggest_weight("trap", 50, 20) == (20, "")

    def test_suggest_weight_bounds(self):
        weight, _ = suggest_weight("sharp", 10, 6)
        assert weight == 5
        weight, _ = suggest_weight("trap", 20, 35)
        assert weight == 40
