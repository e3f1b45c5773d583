"""Unit tests for odds movement detection, authenticity and consolidation."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from linewatch.services.ingestion.odds_movement import (
    DetectedMovement,
    analyze_authenticity,
    apply_authenticity,
    consolidate_movements,
    detect_movement,
    hours_until,
    is_significant_move,
    prop_outcome_name,
    sharp_indicator,
)
from linewatch.services.odds_api.client import OddsEvent

NOW = datetime(2026, 10, 19, 18, 0, tzinfo=timezone.utc)


def make_event(hours_out: float = 2.0) -> OddsEvent:
    return OddsEvent(
        id="evt1",
        sport_key="basketball_nba",
        commence_time=NOW + timedelta(hours=hours_out),
        home_team="Boston Celtics",
        away_team="New York Knicks",
    )


def snapshot(price, point=None, opening_price=None, opening_point=None):
    return SimpleNamespace(
        price=price,
        point=point,
        opening_price=opening_price,
        opening_point=opening_point,
    )


def movement(
    outcome="Boston Celtics",
    bookmaker="fanduel",
    market="spreads",
    old=-110,
    new=-120,
    old_point=None,
    new_point=None,
    hours=2.0,
    player=None,
):
    point_change = (
        new_point - old_point if old_point is not None and new_point is not None else None
    )
    indicator = sharp_indicator(new - old, point_change, market, player is not None)
    return DetectedMovement(
        event_id="evt1",
        sport="NBA",
        event_name="New York Knicks @ Boston Celtics",
        bookmaker=bookmaker,
        market_type=market,
        outcome_name=outcome,
        old_price=old,
        new_price=new,
        price_change=new - old,
        old_point=old_point,
        new_point=new_point,
        point_change=point_change,
        hours_to_game=hours,
        player_name=player,
        is_sharp_action=indicator is not None,
        sharp_indicator=indicator,
    )


class TestDetection:
    """Snapshot comparison."""

    def test_first_sighting_is_not_a_movement(self):
        assert detect_movement(make_event(), "NBA", "fanduel", "h2h", "Boston Celtics", -150, None, None, NOW) is None

    def test_small_move_ignored(self):
        result = detect_movement(
            make_event(), "NBA", "fanduel", "h2h", "Boston Celtics", -152, None, snapshot(-150), NOW
        )
        assert result is None

    def test_significant_move_detected(self):
        result = detect_movement(
            make_event(hours_out=2.5),
            "NBA",
            "fanduel",
            "spreads",
            "Boston Celtics",
            -122,
            -4.5,
            snapshot(-110, -4.0, opening_price=-105, opening_point=-3.5),
            NOW,
        )

        assert result.price_change == -12
        assert result.point_change == -0.5
        assert result.hours_to_game == 2.5
        assert result.opening_price == -105
        assert result.opening_point == -3.5
        assert result.is_sharp_action
        assert result.sharp_indicator == "STEAM MOVE - Major price shift detected"
        assert result.event_name == "New York Knicks @ Boston Celtics"

    def test_opening_falls_back_to_snapshot_price(self):
        result = detect_movement(
            make_event(), "NBA", "fanduel", "h2h", "Boston Celtics", -160, None, snapshot(-150), NOW
        )
        assert result.opening_price == -150

    def test_opening_point_falls_back_independently(self):
        result = detect_movement(
            make_event(),
            "NBA",
            "fanduel",
            "spreads",
            "Boston Celtics",
            -125,
            -4.5,
            snapshot(-110, -4.0, opening_price=-105, opening_point=None),
            NOW,
        )
        assert result.opening_price == -105
        assert result.opening_point == -4.0

    def test_prop_threshold_lower(self):
        assert is_significant_move(2, None, is_player_prop=True)
        assert not is_significant_move(2, None, is_player_prop=False)
        assert is_significant_move(0, 0.5)
        assert not is_significant_move(1, 0.25)

    def test_hours_until_unknown_start(self):
        assert hours_until(None, NOW) == 24.0
        assert hours_until(NOW + timedelta(minutes=90), NOW) == 1.5

    @pytest.mark.parametrize(
        "price_change,point_change,market,is_prop,expected",
        [
            (12, None, "h2h", False, "STEAM MOVE - Major price shift detected"),
            (-10, None, "player_points", True, "STEAM MOVE - PTS prop shifted 10 pts"),
            (8, None, "spreads", False, "SHARP ACTION - Price moved without spread change"),
            (8, 1.0, "spreads", False, "POSSIBLE SHARP - Significant line movement"),
            (7, None, "player_assists", True, "SHARP ACTION - AST moved without line change"),
            (5, None, "player_rebounds", True, "POSSIBLE SHARP - REB line movement"),
            (4, None, "h2h", False, None),
        ],
    )
    def test_sharp_indicator(self, price_change, point_change, market, is_prop, expected):
        assert sharp_indicator(price_change, point_change, market, is_prop) == expected

    def test_prop_outcome_name(self):
        assert prop_outcome_name("Jayson Tatum", "Over", 27.5) == "Jayson Tatum Over 27.5"
        assert prop_outcome_name("Jayson Tatum", "Over", None) == "Jayson Tatum Over"


class TestAuthenticity:
    """Authenticity read from the whole poll."""

    def test_consensus_late_line_and_juice_is_real(self):
        primary = movement(old=-110, new=-122, old_point=-4.0, new_point=-4.5, hours=2)
        other_book = movement(bookmaker="draftkings", old=-110, new=-118, hours=2)
        analysis = analyze_authenticity(primary, [primary, other_book])

        assert analysis.authenticity == "real"
        assert analysis.recommendation == "pick"
        assert analysis.books_consensus == 2
        assert not analysis.opposite_side_moved
        assert "MULTI_BOOK_CONSENSUS" in analysis.signals
        assert "LINE_AND_JUICE_CONFIRMED" in analysis.signals
        assert analysis.reason.startswith("Strong professional action.")
        assert "LATE MONEY SWEET SPOT" in analysis.reason
        assert analysis.confidence == 1.0

    def test_both_sides_price_only_early_is_fake(self):
        home = movement(old=-110, new=-125, hours=10)
        away = movement(outcome="New York Knicks", old=-110, new=105, hours=10)
        analysis = analyze_authenticity(home, [home, away])

        assert analysis.authenticity == "fake"
        assert analysis.recommendation == "fade"
        assert analysis.opposite_side_moved
        assert "BOTH_SIDES_MOVED" in analysis.signals
        assert "PRICE_ONLY_MOVE_TRAP" in analysis.signals
        assert "EARLY_MORNING_MOVE" in analysis.reason.replace(" ", "_")
        assert 0 <= analysis.confidence < 0.5

    def test_consensus_requires_same_direction(self):
        primary = movement(old=-110, new=-120)
        opposite_direction = movement(bookmaker="draftkings", old=-110, new=-100)
        analysis = analyze_authenticity(primary, [primary, opposite_direction])

        assert analysis.books_consensus == 1
        assert "SINGLE_BOOK_DIVERGENCE" in analysis.signals

    def test_heavy_favourite_shortening(self):
        m = movement(market="h2h", old=-220, new=-240, hours=5)
        analysis = analyze_authenticity(m, [m])
        assert "HEAVY_FAVORITE_SHORTENING" in analysis.signals

    def test_apply_authenticity_skips_non_sharp(self):
        quiet = movement(old=-110, new=-113)
        loud = movement(outcome="New York Knicks", bookmaker="draftkings", old=-110, new=-125)
        result = apply_authenticity([quiet, loud])

        assert result[0].movement_authenticity is None
        assert result[1].movement_authenticity is not None
        row = result[0].to_row()
        assert row["movement_authenticity"] == "uncertain"
        assert row["authenticity_confidence"] == 0.5
        assert row["recommendation"] == "caution"
        assert row["books_consensus"] == 1


class TestConsolidation:
    """One primary record per event / market / bookmaker."""

    def test_single_movement_keeps_outcome(self):
        m = movement()
        [result] = consolidate_movements([m])
        assert result.final_pick == "Boston Celtics"
        assert result.related_movements == []

    def test_single_fake_movement_prefixed_fade(self):
        m = movement()
        m.movement_authenticity = "fake"
        m.recommendation_reason = "Likely market adjustment or trap."
        [result] = consolidate_movements([m])
        assert result.recommendation_reason == (
            "FADE Boston Celtics - Likely market adjustment or trap."
        )

    def test_largest_move_is_primary(self):
        small = movement(outcome="New York Knicks", old=-110, new=-104)
        large = movement(old=-110, new=-125)
        large.movement_authenticity = "real"
        large.recommendation_reason = "Strong professional action."
        [result] = consolidate_movements([small, large])

        assert result.outcome_name == "Boston Celtics"
        assert result.final_pick == "Boston Celtics"
        assert result.recommendation_reason == "BET Boston Celtics - Strong professional action."
        assert result.related_movements == [
            {"outcome_name": "New York Knicks", "old_price": -110, "new_price": -104, "price_change": 6}
        ]
        assert result.to_row()["is_primary_movement"] is True

    def test_fake_primary_flips_pick(self):
        other = movement(outcome="New York Knicks", old=-110, new=-100)
        fake = movement(old=-110, new=-130)
        fake.movement_authenticity = "fake"
        fake.recommendation_reason = "Likely market adjustment or trap."
        [result] = consolidate_movements([other, fake])

        assert result.final_pick == "New York Knicks"
        assert result.recommendation_reason.startswith(
            "FADE Boston Celtics, BET New York Knicks"
        )

    def test_groups_split_by_bookmaker(self):
        a = movement(bookmaker="fanduel")
        b = movement(bookmaker="draftkings")
        assert len(consolidate_movements([a, b])) == 2
