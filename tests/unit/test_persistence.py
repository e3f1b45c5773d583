"""Service tests against an in-memory SQLite database."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from linewatch.models.domain import (
    JobRun,
    LineMovement,
    MarketSignal,
    NbaPlayerGameLog,
    OddsSnapshot,
    PlayerArchetype,
    PlayerSeasonStats,
    SharpSignalAccuracy,
)
from linewatch.models.upsert import upsert_rows
from linewatch.services.analysis import ArchetypeSyncService, MarketSignalService
from linewatch.services.analysis.calibration import CalibrationService, InsufficientDataError
from linewatch.services.ingestion.odds_movement import OddsMovementService
from linewatch.services.jobs import run_tracked
from linewatch.services.odds_api.client import Bookmaker, Market, OddsEvent, Outcome
from linewatch.services.profiling import SeasonStatsService
from linewatch.services.scoring.market_signal import MarketSignalInput


async def count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestUpsert:
    def test_rerun_keeps_one_row_per_key(self, run_db):
        rows = [
            {"player_name": "Jalen Brunson", "archetype": "PLAYMAKER"},
            {"player_name": "Jalen Brunson", "archetype": "COMBO_GUARD"},
        ]

        async def operation(session):
            written = await upsert_rows(session, PlayerArchetype, rows, ["player_name"])
            await upsert_rows(session, PlayerArchetype, rows, ["player_name"])
            await session.commit()
            archetype = (await session.execute(select(PlayerArchetype.archetype))).scalar_one()
            return written, await count(session, PlayerArchetype), archetype

        written, total, archetype = run_db(operation)

        assert written == 1
        assert total == 1
        assert archetype == "COMBO_GUARD"

    def test_empty_rows(self, run_db):
        assert run_db(lambda session: upsert_rows(session, PlayerArchetype, [], ["player_name"])) == 0


class TestJobTracking:
    def test_success_recorded(self, run_db):
        async def operation(session):
            async def work():
                return {"classified": 4, "samples": ["a"]}

            await run_tracked(session, "archetype_classification", work, records_key="classified")
            return (
                await session.execute(select(JobRun).execution_options(populate_existing=True))
            ).scalar_one()

        job = run_db(operation)

        assert job.status == "success"
        assert job.records_processed == 4
        assert job.job_metadata == {"classified": 4, "samples": ["a"]}
        assert job.completed_at is not None

    def test_failure_recorded_and_raised(self, run_db):
        async def operation(session):
            async def work():
                raise ValueError("upstream down")

            with pytest.raises(ValueError):
                await run_tracked(session, "season_stats", work)
            return (
                await session.execute(select(JobRun).execution_options(populate_existing=True))
            ).scalar_one()

        job = run_db(operation)

        assert job.status == "failed"
        assert job.error_message == "upstream down"


class TestSeasonStatsService:
    def test_compute_is_idempotent(self, run_db, log_rows):
        async def operation(session):
            session.add_all(NbaPlayerGameLog(**vars(r)) for r in log_rows)
            session.add(
                NbaPlayerGameLog(
                    player_name="Deep Bench", team="New York Knicks", game_date=log_rows[0].game_date
                )
            )
            await session.commit()

            service = SeasonStatsService(session)
            first = await service.compute("2026-27")
            second = await service.compute("2026-27")
            stats = (
                await session.execute(
                    select(PlayerSeasonStats).where(PlayerSeasonStats.player_name == "Jalen Brunson")
                )
            ).scalar_one()
            return first, second, stats.avg_points, await count(session, PlayerSeasonStats)

        first, second, avg_points, total = run_db(operation)

        assert first == {"season": "2026-27", "total_players": 2, "updated": 1, "skipped": 1}
        assert second["updated"] == 1
        assert avg_points == 22.5
        assert total == 1


class TestArchetypeSyncService:
    def test_sync_respects_overrides(self, run_db):
        async def operation(session):
            session.add_all(
                [
                    PlayerSeasonStats(
                        player_name="Big Man",
                        sport="NBA",
                        season="2026-27",
                        games_played=10,
                        avg_rebounds=12.0,
                        avg_assists=3.0,
                    ),
                    PlayerSeasonStats(
                        player_name="Locked In",
                        sport="NBA",
                        season="2026-27",
                        games_played=10,
                        avg_assists=9.0,
                    ),
                    PlayerSeasonStats(
                        player_name="Steady", sport="NBA", season="2026-27", games_played=10
                    ),
                    PlayerSeasonStats(
                        player_name="Two Games", sport="NBA", season="2026-27", games_played=2
                    ),
                    PlayerArchetype(
                        player_name="Locked In", archetype="SCORING_GUARD", manual_override=True
                    ),
                    PlayerArchetype(player_name="Steady", archetype="ROLE_PLAYER"),
                ]
            )
            await session.commit()

            result = await ArchetypeSyncService(session).sync("2026-27")
            archetypes = dict(
                (await session.execute(select(PlayerArchetype.player_name, PlayerArchetype.archetype))).all()
            )
            return result, archetypes

        result, archetypes = run_db(operation)

        assert result["players_analyzed"] == 3
        assert result["inserted"] == 1
        assert result["skipped_manual"] == 1
        assert result["skipped_same"] == 1
        assert result["sample_classifications"][0]["action"] == "INSERT"
        assert archetypes == {
            "Big Man": "ELITE_REBOUNDER",
            "Locked In": "SCORING_GUARD",
            "Steady": "ROLE_PLAYER",
        }

    def test_no_players(self, run_db):
        result = run_db(lambda session: ArchetypeSyncService(session).sync())
        assert result["message"] == "No players to classify"


class TestCalibrationService:
    def verified_movement(self, i, now, correct=True):
        return LineMovement(
            event_id=f"evt{i}",
            sport="NBA",
            bookmaker="fanduel",
            market_type="spreads",
            outcome_name="Boston Celtics",
            old_price=-110,
            new_price=-125,
            price_change=-15,
            recommendation="pick",
            sharp_edge_score=40.0,
            sharp_signals=["STEAM_MOVE_DETECTED"],
            trap_signals=[],
            outcome_verified=True,
            outcome_correct=correct,
            detected_at=now,
        )

    def test_insufficient_data(self, run_db, now):
        async def operation(session):
            session.add(self.verified_movement(1, now))
            await session.commit()
            with pytest.raises(InsufficientDataError) as exc_info:
                await CalibrationService(session).run(now=now)
            return exc_info.value

        error = run_db(operation)

        assert error.count == 1
        assert error.required == 20

    def test_writes_accuracy_rows(self, run_db, now):
        config = {"min_samples": 3, "min_signal_samples": 2, "min_sport_samples": 1}

        async def operation(session):
            session.add_all(self.verified_movement(i, now) for i in range(3))
            await session.commit()
            report = await CalibrationService(session, config).run(now=now)
            rows = (await session.execute(select(SharpSignalAccuracy))).scalars().all()
            return report, {row.sport: (row.total, row.correct) for row in rows}

        report, rows = run_db(operation)

        assert report["movements_analyzed"] == 3
        assert rows == {"ALL": (3, 3), "NBA": (3, 3)}


class TestMarketSignalService:
    def test_rescoring_updates_in_place(self, run_db):
        data = MarketSignalInput(event_id="evt1", outcome_name="Celtics", confirming_books=4)

        async def operation(session):
            service = MarketSignalService(session)
            await service.score([data])
            await service.score([data])
            scan = await service.scan()
            return scan, await count(session, MarketSignal)

        scan, total = run_db(operation)

        assert total == 1
        assert scan["market_health"] == "active"
        assert scan["signals"][0]["player_name"] is None


class ReplayOddsClient:
    """Stands in for OddsAPIClient, returning one canned poll per call."""

    requests_remaining = None

    def __init__(self, polls):
        self.polls = list(polls)

    async def get_odds(self, sport_key, markets, regions=None):
        return self.polls.pop(0)


def spread_poll(celtics_price, celtics_point):
    commence = datetime.now(timezone.utc) + timedelta(hours=2)
    market = Market(
        key="spreads",
        outcomes=[
            Outcome(name="Boston Celtics", price=celtics_price, point=celtics_point),
            Outcome(name="New York Knicks", price=-110, point=4.0),
        ],
    )
    return [
        OddsEvent(
            id="evt1",
            sport_key="basketball_nba",
            commence_time=commence,
            home_team="Boston Celtics",
            away_team="New York Knicks",
            bookmakers=[Bookmaker(key="fanduel", title="FanDuel", markets=[market])],
        )
    ]


class TestOddsMovementTracking:
    config = {"sport_keys": {"NBA": "basketball_nba"}, "markets": ["spreads"]}

    def test_repeated_poll_adds_no_rows(self, run_db):
        polls = [spread_poll(-110, -4.0), spread_poll(-122, -4.5), spread_poll(-122, -4.5)]

        async def operation(session):
            service = OddsMovementService(ReplayOddsClient(polls), session, self.config)
            runs = []
            for _ in range(3):
                stats = await service.track(["NBA"], include_player_props=False)
                runs.append(
                    (stats, await count(session, OddsSnapshot), await count(session, LineMovement))
                )
            celtics = (
                await session.execute(
                    select(OddsSnapshot)
                    .where(OddsSnapshot.outcome_name == "Boston Celtics")
                    .execution_options(populate_existing=True)
                )
            ).scalar_one()
            return runs, celtics

        runs, celtics = run_db(operation)
        (first, *first_counts), (second, *second_counts), (third, *third_counts) = runs

        assert first["movements_detected"] == 0
        assert first_counts == [2, 0]
        assert second["movements_detected"] == 1
        assert second_counts == [2, 1]
        assert third["movements_detected"] == 0
        assert third_counts == second_counts
        assert celtics.price == -122
        assert celtics.opening_price == -110
        assert celtics.opening_point == -4.0
