"""Durable CRUD over scout configs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arbscout.db.models import ScoutConfig
from arbscout.exceptions import ScoutConfigNotFoundError, ScoutValidationError
from arbscout.scout.policy import ScoutPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoutConfiguration:
    """Fully resolved scout config as seen by the engine and the scheduler."""

    id: str
    name: str
    enabled: bool
    policy: ScoutPolicy
    last_run_at: Optional[datetime]
    total_runs: int
    total_opportunities_found: int
    created_at: datetime

    @classmethod
    def from_row(cls, row: ScoutConfig) -> "ScoutConfiguration":
        return cls(
            id=row.id,
            name=row.name,
            enabled=bool(row.enabled),
            policy=ScoutPolicy.from_stored(row.policy_json),
            last_run_at=row.last_run_at,
            total_runs=row.total_runs or 0,
            total_opportunities_found=row.total_opportunities_found or 0,
            created_at=row.created_at,
        )


def _split_fields(fields: Optional[Mapping[str, Any]]) -> tuple[Optional[str], Optional[bool], dict]:
    """Separate row-level keys (name, enabled) from policy keys."""
    policy_fields = dict(fields or {})
    name = policy_fields.pop("name", None)
    enabled = policy_fields.pop("enabled", None)
    if enabled is not None and not isinstance(enabled, bool):
        raise ScoutValidationError("enabled must be a boolean")
    return name, enabled, policy_fields


def _clean_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ScoutValidationError("name is required")
    return name.strip()


class ScoutConfigStore:
    """Creates, updates and reads scout configs. Each call is its own transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(
        self,
        name: str,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> ScoutConfiguration:
        """
        Create a scout config, filling every unset field from the defaults.

        Args:
            name: Human-readable name
            fields: Partial policy (plus optional ``enabled``)

        Raises:
            ScoutValidationError: If the name is blank or a field is invalid
        """
        clean_name = _clean_name(name)
        _, enabled, policy_fields = _split_fields(fields)
        policy = ScoutPolicy.merged(None, policy_fields)

        row = ScoutConfig(
            name=clean_name,
            policy_json=policy.to_stored(),
            enabled=True if enabled is None else enabled,
            total_runs=0,
            total_opportunities_found=0,
            created_at=datetime.utcnow(),
        )
        async with self._session_factory() as db:
            db.add(row)
            await db.commit()
            await db.refresh(row)

        logger.info("Scout config created: %s (%s)", row.id, clean_name)
        return ScoutConfiguration.from_row(row)

    async def update(
        self,
        config_id: str,
        fields: Mapping[str, Any],
    ) -> Optional[ScoutConfiguration]:
        """
        Shallow-merge ``fields`` into an existing config.

        Omitted fields keep their value; runtime counters cannot be changed.

        Returns:
            The updated config, or None if the id does not exist

        Raises:
            ScoutValidationError: If a supplied field is invalid
        """
        name, enabled, policy_fields = _split_fields(fields)
        new_name = _clean_name(name) if name is not None else None

        async with self._session_factory() as db:
            row = await db.get(ScoutConfig, config_id)
            if row is None:
                return None

            current = ScoutPolicy.from_stored(row.policy_json)
            row.policy_json = ScoutPolicy.merged(current, policy_fields).to_stored()
            if new_name is not None:
                row.name = new_name
            if enabled is not None:
                row.enabled = enabled

            await db.commit()
            await db.refresh(row)

        logger.info("Scout config updated: %s", config_id)
        return ScoutConfiguration.from_row(row)

    async def get(self, config_id: str) -> Optional[ScoutConfiguration]:
        """Get a single scout config by id."""
        async with self._session_factory() as db:
            row = await db.get(ScoutConfig, config_id)
            return ScoutConfiguration.from_row(row) if row else None

    async def require(self, config_id: str) -> ScoutConfiguration:
        """Get a scout config by id, raising ScoutConfigNotFoundError if missing."""
        config = await self.get(config_id)
        if config is None:
            raise ScoutConfigNotFoundError(config_id)
        return config

    async def list(self, enabled_only: bool = False) -> list[ScoutConfiguration]:
        """List scout configs, newest first (disabled ones included by default)."""
        query = select(ScoutConfig).order_by(
            ScoutConfig.created_at.desc(), ScoutConfig.id.asc()
        )
        if enabled_only:
            query = query.where(ScoutConfig.enabled.is_(True))

        async with self._session_factory() as db:
            result = await db.execute(query)
            return [ScoutConfiguration.from_row(row) for row in result.scalars().all()]

    async def soft_delete(self, config_id: str) -> bool:
        """
        Disable a scout config, keeping its policy, counters and queue history.

        Returns:
            False if the id does not exist
        """
        async with self._session_factory() as db:
            result = await db.execute(
                update(ScoutConfig)
                .where(ScoutConfig.id == config_id)
                .values(enabled=False)
            )
            await db.commit()

        if result.rowcount == 0:
            return False
        logger.info("Scout config disabled (soft-deleted): %s", config_id)
        return True

    async def record_run(
        self,
        config_id: str,
        queued: int,
        ran_at: Optional[datetime] = None,
    ) -> None:
        """Stamp a finished cycle onto the config counters in one statement."""
        async with self._session_factory() as db:
            await db.execute(
                update(ScoutConfig)
                .where(ScoutConfig.id == config_id)
                .values(
                    last_run_at=ran_at or datetime.utcnow(),
                    total_runs=ScoutConfig.total_runs + 1,
                    total_opportunities_found=ScoutConfig.total_opportunities_found + queued,
                )
            )
            await db.commit()
