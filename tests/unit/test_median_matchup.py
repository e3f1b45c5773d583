"""Unit tests for the NBA median matchup engine."""

import pytest

from linewatch.services.scoring.median_matchup import (
    DefenseCodes,
    GameLine,
    MedianEngineConfig,
    MedianMatchupEngine,
    defense_code_for,
    defense_multiplier,
    hit_rates,
    normalize_prop_type,
    valid_line,
    volatility_ratio,
)


class TestMedianMatchupEngine:
    """Test the MedianMatchupEngine class."""

    def setup_method(self):
        self.engine = MedianMatchupEngine()

    def test_strong_over(self, game_logs):
        """
        Medians: last 10 = 26.5, last 5 = 27.

        edge = 26.5 - 22.5 + 0.2 x 0.5 = 4.1 with every game over the line.
        """
        pick = self.engine.evaluate("Jalen Brunson", "points", 22.5, game_logs)

        assert pick.median10 == 26.5
        assert pick.median5 == 27
        assert pick.edge == 4.1
        assert pick.hit_rate_over == 1.0
        assert pick.recommendation == "STRONG OVER"
        assert pick.tier == "A"
        assert pick.bet_label == "STRONG"
        assert pick.direction == "OVER"
        assert pick.confidence_flag == "HIGH"
        assert pick.actionable

    def test_tough_defence_downgrades_to_lean(self, game_logs):
        """Defence code 85 suppresses the median by 8%."""
        pick = self.engine.evaluate(
            "Jalen Brunson",
            "points",
            22.5,
            game_logs,
            defense=DefenseCodes(vs_points=85, vs_rebounds=50, vs_assists=50),
        )

        assert pick.defense_code == 85
        assert pick.defense_multiplier == -0.08
        assert pick.adjusted_median == 24.38
        assert pick.edge == 1.98
        assert pick.recommendation == "LEAN OVER"
        assert pick.tier == "B"
        assert pick.confidence_flag == "MEDIUM"
        assert "def=85->-8%" in pick.reason

    def test_line_at_median_is_no_bet(self, game_logs):
        pick = self.engine.evaluate("Jalen Brunson", "points", 26.5, game_logs)

        assert pick.recommendation == "NO BET"
        assert pick.tier == "D"
        assert pick.direction is None
        assert not pick.actionable

    def test_under(self, game_logs):
        pick = self.engine.evaluate("Jalen Brunson", "points", 31.5, game_logs)

        assert pick.edge < 0
        assert pick.hit_rate_under == 1.0
        assert pick.recommendation == "STRONG UNDER"

    def test_insufficient_sample(self, game_logs):
        pick = self.engine.evaluate("Rookie", "points", 10.5, game_logs[:5])

        assert pick.recommendation == "NO BET"
        assert pick.tier == "D"
        assert pick.games_analyzed == 5
        assert pick.reason == "Insufficient sample (5/8 games)"

    def test_did_not_play_games_ignored(self, game_logs):
        logs = [GameLine(minutes=0, points=0)] * 3 + game_logs
        pick = self.engine.evaluate("Jalen Brunson", "points", 22.5, logs)

        assert pick.games_analyzed == 10
        assert pick.median10 == 26.5

    def test_combo_stat(self, game_logs):
        pick = self.engine.evaluate("Jalen Brunson", "pra", 30.5, game_logs)

        # 6 rebounds + 5 assists on top of points every game
        assert pick.median10 == 37.5
        assert pick.recommendation == "STRONG OVER"

    def test_high_volatility_damps_edge(self):
        points = [40, 5, 38, 6, 35, 8, 36, 4, 39, 7]
        logs = [GameLine(minutes=30, points=p) for p in points]
        pick = self.engine.evaluate("Streaky", "points", 15.5, logs)

        assert pick.volatility > 0.35
        # Never STRONG above the volatility cap
        assert not pick.recommendation.startswith("STRONG")

    def test_config_from_mapping(self):
        config = MedianEngineConfig.from_mapping(
            {
                "min_games": 5,
                "thresholds": {"points": {"lean": 1.0, "strong": 2.0, "vol_cap_strong": 0.4}},
            }
        )
        assert config.min_games == 5
        assert config.thresholds["points"].strong == 2.0
        assert config.thresholds["rebounds"].lean == 1.3


class TestHelpers:
    """Helper function behaviour."""

    @pytest.mark.parametrize(
        "code,multiplier",
        [(None, 0.0), (95, -0.08), (80, -0.08), (79, -0.04), (60, -0.04), (59, 0.0), (40, 0.0), (20, 0.04), (19, 0.08)],
    )
    def test_defense_multiplier(self, code, multiplier):
        assert defense_multiplier(code) == multiplier

    def test_defense_code_for_combos(self):
        codes = DefenseCodes(vs_points=70, vs_rebounds=50, vs_assists=45)

        assert defense_code_for(codes, "points") == 70
        assert defense_code_for(codes, "pra") == 55
        assert defense_code_for(codes, "pr") == 60
        assert defense_code_for(codes, "ra") == 48
        assert defense_code_for(None, "points") is None
        assert defense_code_for(DefenseCodes(vs_points=70), "pa") is None

    @pytest.mark.parametrize(
        "prop_type,stat",
        [
            ("points", "points"),
            ("player_points", "points"),
            ("Player_Rebounds", "rebounds"),
            ("assists", "assists"),
            ("points_rebounds_assists", "pra"),
            ("player_points_rebounds_assists", "pra"),
            ("player_points_rebounds", "pr"),
            ("points_assists", "pa"),
            ("rebounds_assists", "ra"),
            ("pa", "pa"),
            ("threes", None),
            ("", None),
            (None, None),
        ],
    )
    def test_normalize_prop_type(self, prop_type, stat):
        assert normalize_prop_type(prop_type) == stat

    def test_hit_rates_strict(self):
        over, under = hit_rates([20, 22.5, 25, 18], 22.5)
        assert over == 0.25
        assert under == 0.5

    def test_volatility_non_positive_mean(self):
        assert volatility_ratio([0, 0, 0]) == 1.0
        assert volatility_ratio([10, 10, 10]) == 0.0

    def test_valid_line(self):
        assert valid_line("22.5") == 22.5
        assert valid_line(0) is None
        assert valid_line(-3) is None
        assert valid_line("abc") is None
        assert valid_line(float("nan")) is None
        assert valid_line(None) is None
