"""Sharp engine persistence: config loading and movement (re)analysis."""

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.models.domain import LineMovement, SharpEngineSetting, SharpEngineSportSetting
from linewatch.services.scoring.sharp import (
    DEFAULT_HOURS_TO_GAME,
    DEFAULT_TOTAL_BOOKS,
    ENGINE_VERSION,
    MovementInput,
    SharpEngine,
    SharpEngineConfig,
    SharpResult,
    load_default_config,
)

logger = structlog.get_logger(__name__)

MAX_BATCH = 500


async def load_sharp_config(session: AsyncSession, sport: str | None = None) -> SharpEngineConfig:
    """
    Effective sharp engine config.

    Layers: defaults.yaml -> sharp_engine_config rows -> sharp_engine_sport_config
    rows for ``sport``. Unknown keys are ignored.
    """
    config = load_default_config()

    result = await session.execute(
        select(SharpEngineSetting.config_key, SharpEngineSetting.config_value)
    )
    config = config.with_overrides({key: value for key, value in result.all()})

    if sport:
        result = await session.execute(
            select(SharpEngineSportSetting.config_key, SharpEngineSportSetting.config_value)
            .where(SharpEngineSportSetting.sport == sport)
        )
        sport_rows = {key: value for key, value in result.all()}
        if sport_rows:
            logger.debug("sharp_sport_config_loaded", sport=sport, overrides=len(sport_rows))
        config = config.with_overrides(sport_rows)

    return config


def movement_input_from_row(movement: LineMovement) -> MovementInput:
    """Build engine input from a stored line movement."""
    hours = DEFAULT_HOURS_TO_GAME
    if movement.commence_time and movement.detected_at:
        commence = movement.commence_time
        detected = movement.detected_at
        if commence.tzinfo is None:
            commence = commence.replace(tzinfo=timezone.utc)
        if detected.tzinfo is None:
            detected = detected.replace(tzinfo=timezone.utc)
        hours = (commence - detected).total_seconds() / 3600

    opening = movement.opening_price if movement.opening_price is not None else movement.old_price
    return MovementInput(
        price_change=movement.price_change,
        line_change=movement.point_change,
        hours_to_game=max(0.0, hours),
        books_count=movement.books_consensus,
        total_books=DEFAULT_TOTAL_BOOKS,
        current_price=movement.new_price,
        opening_price=opening,
        opposite_side_moved=movement.opposite_side_moved,
        is_steam_move="STEAM" in (movement.sharp_indicator or ""),
        is_player_prop=movement.is_player_prop,
        sport=movement.sport,
    )


def apply_result(movement: LineMovement, result: SharpResult) -> None:
    """Write engine output onto a line movement row."""
    movement.sharp_pressure = result.sharp_pressure
    movement.trap_pressure = result.trap_pressure
    movement.sharp_edge_score = result.ses
    movement.sharp_probability = result.sharp_pct
    movement.sharp_label = result.label
    movement.sharp_signals = result.sharp_signals
    movement.trap_signals = result.trap_signals
    movement.movement_authenticity = result.authenticity
    movement.recommendation = result.recommendation
    movement.authenticity_confidence = result.sharp_pct / 100
    movement.engine_version = ENGINE_VERSION
    movement.analyzed_at = datetime.now(timezone.utc)


class SharpAnalysisService:
    """Run the sharp engine against request payloads or stored movements."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def analyze(
        self,
        movement: MovementInput,
        sport: str | None = None,
        movement_id: int | None = None,
    ) -> dict[str, Any]:
        """
        Score one movement and optionally write the result back.

        Args:
            movement: Movement payload
            sport: Sport for per-sport config
            movement_id: line_movements id to update with the result

        Returns:
            Dict with result, config and engine_version
        """
        sport = sport or movement.sport
        config = await load_sharp_config(self.session, sport)
        movement.sport = sport
        result = SharpEngine(config).analyze(movement)

        updated = False
        if movement_id is not None:
            row = await self.session.get(LineMovement, movement_id)
            if row is None:
                logger.warning("movement_not_found", movement_id=movement_id)
            else:
                apply_result(row, result)
                await self.session.commit()
                updated = True

        logger.info(
            "sharp_analysis_complete",
            ses=result.ses,
            sharp_pct=result.sharp_pct,
            label=result.label,
            sport=sport,
            movement_id=movement_id,
        )
        return {
            "result": result.to_dict(),
            "config": config.to_dict(),
            "engine_version": ENGINE_VERSION,
            "movement_updated": updated,
        }

    async def batch_reanalyze(
        self,
        limit: int = 100,
        sport: str | None = None,
    ) -> dict[str, Any]:
        """
        Re-score the latest stored movements with per-sport config.

        Args:
            limit: Number of movements (capped at 500)
            sport: Only movements of this sport

        Returns:
            Dict with processed count and per-movement results
        """
        limit = max(1, min(limit, MAX_BATCH))
        query = select(LineMovement).order_by(LineMovement.detected_at.desc()).limit(limit)
        if sport:
            query = query.where(LineMovement.sport == sport)
        movements = (await self.session.execute(query)).scalars().all()

        configs: dict[str | None, SharpEngineConfig] = {}
        results = []
        skipped = 0
        for movement in movements:
            if movement.old_price is None or movement.new_price is None:
                skipped += 1
                continue
            if movement.sport not in configs:
                configs[movement.sport] = await load_sharp_config(self.session, movement.sport)
            result = SharpEngine(configs[movement.sport]).analyze(movement_input_from_row(movement))
            apply_result(movement, result)
            results.append(
                {
                    "id": movement.id,
                    "label": result.label,
                    "SES": result.ses,
                    "recommendation": result.recommendation,
                    "price_direction": result.price_direction,
                }
            )

        await self.session.commit()
        logger.info("sharp_batch_reanalyzed", processed=len(results), skipped=skipped, sport=sport)
        return {
            "processed": len(results),
            "skipped": skipped,
            "results": results,
            "engine_version": ENGINE_VERSION,
        }

    async def get_config(self, sport: str | None = None) -> dict[str, Any]:
        config = await load_sharp_config(self.session, sport)
        return {"config": config.to_dict(), "sport": sport, "engine_version": ENGINE_VERSION}
