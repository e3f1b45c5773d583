"""Unit tests for upstream response parsing (The Odds API, ESPN)."""

from datetime import date, datetime, timedelta, timezone

from linewatch.services.espn.client import (
    completed_event_ids,
    parse_box_score,
    parse_made,
    parse_minutes,
)
from linewatch.services.ingestion.player_props import parse_prop_lines, todays_events
from linewatch.services.odds_api.client import parse_event

EVENT_ODDS = {
    "id": "e1f2",
    "sport_key": "basketball_nba",
    "commence_time": "2026-10-20T23:30:00Z",
    "home_team": "Boston Celtics",
    "away_team": "New York Knicks",
    "bookmakers": [
        {
            "key": "fanduel",
            "title": "FanDuel",
            "markets": [
                {
                    "key": "player_points",
                    "outcomes": [
                        {"name": "Over", "description": "Jayson Tatum", "price": -115, "point": 27.5},
                        {"name": "Under", "description": "Jayson Tatum", "price": -105, "point": 27.5},
                        {"name": "Over", "description": "Jalen Brunson", "price": -110, "point": 26.5},
                        {"name": "Over", "price": -110, "point": 10.5},
                    ],
                }
            ],
        },
        {
            "key": "bovada",
            "title": "Bovada",
            "markets": [
                {
                    "key": "player_points",
                    "outcomes": [
                        {"name": "Over", "description": "Jayson Tatum", "price": -120, "point": 27.5},
                    ],
                }
            ],
        },
    ],
}


class TestOddsParsing:
    """The Odds API payloads."""

    def test_parse_event(self):
        event = parse_event(EVENT_ODDS)

        assert event.id == "e1f2"
        assert event.commence_time == datetime(2026, 10, 20, 23, 30, tzinfo=timezone.utc)
        assert event.description == "New York Knicks @ Boston Celtics"
        assert [b.key for b in event.bookmakers] == ["fanduel", "bovada"]
        assert event.bookmakers[0].markets[0].outcomes[0].description == "Jayson Tatum"

    def test_parse_prop_lines_merges_sides(self):
        lines = parse_prop_lines(parse_event(EVENT_ODDS), "NBA", bookmakers=["fanduel"])
        by_player = {line.player_name: line for line in lines}

        assert set(by_player) == {"Jayson Tatum", "Jalen Brunson"}
        tatum = by_player["Jayson Tatum"]
        assert tatum.prop_type == "points"
        assert tatum.line == 27.5
        assert tatum.over_price == -115
        assert tatum.under_price == -105
        assert by_player["Jalen Brunson"].under_price is None

        row = tatum.to_row()
        assert row["is_active"] is True
        assert row["home_team"] == "Boston Celtics"

    def test_parse_prop_lines_without_filter(self):
        lines = parse_prop_lines(parse_event(EVENT_ODDS), "NBA")
        assert {line.bookmaker for line in lines} == {"fanduel", "bovada"}

    def test_todays_events(self):
        now = datetime(2026, 10, 20, 15, 0, tzinfo=timezone.utc)
        tonight = parse_event(EVENT_ODDS)
        tomorrow = parse_event(
            {**EVENT_ODDS, "id": "later", "commence_time": "2026-10-21T01:00:00Z"}
        )
        started = parse_event(
            {**EVENT_ODDS, "id": "started", "commence_time": "2026-10-20T14:00:00Z"}
        )

        assert [e.id for e in todays_events([tonight, tomorrow, started], now)] == ["e1f2"]


SCOREBOARD = {
    "events": [
        {"id": "401", "status": {"type": {"completed": True}}},
        {"id": "402", "status": {"type": {"completed": False}}},
        {"id": "403"},
    ]
}

SUMMARY = {
    "header": {
        "competitions": [
            {
                "date": "2026-10-21T23:30Z",
                "competitors": [
                    {"homeAway": "home", "team": {"id": "2", "displayName": "Boston Celtics"}},
                    {"homeAway": "away", "team": {"id": "18", "displayName": "New York Knicks"}},
                ],
            }
        ]
    },
    "boxscore": {
        "players": [
            {
                "team": {"id": "2"},
                "statistics": [
                    {
                        "name": "starters",
                        "athletes": [
                            {
                                "athlete": {"displayName": "Jayson Tatum"},
                                "stats": ["38:12", "11-22", "4-9", "3-4", "1", "8", "9", "6", "2", "1", "3", "2", "+12", "29"],
                            }
                        ],
                    }
                ],
            },
            {
                "team": {"id": "18"},
                "statistics": [
                    {
                        "name": "bench",
                        "athletes": [
                            {"athlete": {"displayName": "Miles McBride"}, "stats": ["DNP"]},
                            {"athlete": {}, "stats": []},
                        ],
                    }
                ],
            },
        ]
    },
}


class TestESPNParsing:
    """ESPN scoreboard and summary payloads."""

    def test_completed_event_ids(self):
        assert completed_event_ids(SCOREBOARD) == ["401"]
        assert completed_event_ids({}) == []

    def test_parse_box_score(self):
        lines = parse_box_score(SUMMARY, "401")
        by_player = {line.player_name: line for line in lines}

        tatum = by_player["Jayson Tatum"]
        assert tatum.game_date == date(2026, 10, 21)
        assert tatum.team == "Boston Celtics"
        assert tatum.opponent == "New York Knicks"
        assert tatum.is_home is True
        assert tatum.minutes == 38
        assert tatum.points == 29
        assert tatum.rebounds == 9
        assert tatum.assists == 6
        assert tatum.steals == 2
        assert tatum.blocks == 1
        assert tatum.turnovers == 3
        assert tatum.threes_made == 4

        bench = by_player["Miles McBride"]
        assert bench.is_home is False
        assert bench.team == "New York Knicks"
        assert bench.minutes == 0
        assert bench.points == 0

    def test_summary_without_date(self):
        assert parse_box_score({"header": {"competitions": [{}]}}, "1") == []
        assert parse_box_score({}, "1") == []

    def test_stat_helpers(self):
        assert parse_minutes("34:12") == 34
        assert parse_minutes("DNP") == 0
        assert parse_minutes(None) == 0
        assert parse_made("3-7") == 3
        assert parse_made(None) == 0
