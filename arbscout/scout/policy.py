"""Scout policy value type.

A ``ScoutPolicy`` is the fully resolved set of thresholds one scout config
scans with. It is persisted as a JSON blob on ``scout_configs.policy_json``
and always rebuilt by merging over the defaults, so a stored policy written
by an older version (or by hand) still produces a complete policy.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from arbscout.config import settings
from arbscout.exceptions import ScoutValidationError

logger = logging.getLogger(__name__)

POLICY_VERSION = 1


class ScoutPolicy(BaseModel):
    """Thresholds and search terms for one scout config."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    version: int = POLICY_VERSION
    interval_ms: int = 900_000
    platforms: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    min_margin_pct: float = Field(default=20.0, ge=0)
    min_source_price: float = Field(default=5.0, ge=0)
    max_source_price: float = Field(default=100.0, gt=0)
    max_results: int = Field(default=50, ge=1)
    auto_list: bool = False
    target_platform: str = "ebay"
    exclude_brands: list[str] = Field(default_factory=list)
    exclude_categories: list[str] = Field(default_factory=list)

    @field_validator("platforms", "keywords", "exclude_brands", "exclude_categories")
    @classmethod
    def strip_blank_terms(cls, values: list[str]) -> list[str]:
        return [v.strip() for v in values if v and v.strip()]

    @field_validator("min_margin_pct", "min_source_price", "max_source_price")
    @classmethod
    def require_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("must be a finite number")
        return value

    @field_validator("interval_ms")
    @classmethod
    def check_interval_floor(cls, value: int) -> int:
        if value < settings.scout_min_interval_ms:
            raise ValueError(f"must be at least {settings.scout_min_interval_ms} ms")
        return value

    @field_validator("target_platform")
    @classmethod
    def require_target(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("target_platform must not be blank")
        return value

    @model_validator(mode="after")
    def check_price_band(self) -> "ScoutPolicy":
        if self.min_source_price > self.max_source_price:
            raise ValueError("min_source_price must not exceed max_source_price")
        return self

    @classmethod
    def field_names(cls) -> set[str]:
        return set(cls.model_fields) - {"version"}

    @classmethod
    def merged(
        cls,
        base: Optional["ScoutPolicy"] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "ScoutPolicy":
        """
        Build a policy by merging overrides over ``base`` (or the defaults).

        Keys whose value is None are treated as not supplied.

        Raises:
            ScoutValidationError: On unknown keys or invalid values
        """
        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        unknown = set(overrides) - cls.field_names()
        if unknown:
            raise ScoutValidationError(
                f"Unknown scout config fields: {', '.join(sorted(unknown))}"
            )

        data = (base or cls()).model_dump()
        data.update(overrides)
        data["version"] = POLICY_VERSION
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ScoutValidationError(_describe(exc)) from exc

    @classmethod
    def from_stored(cls, raw: Optional[str]) -> "ScoutPolicy":
        """
        Deserialize a stored policy blob, never failing.

        Unparseable blobs yield the defaults. Individually invalid fields are
        dropped (and fall back to their defaults) while valid ones are kept.
        """
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Unparseable scout policy blob, using defaults")
            return cls()
        if not isinstance(data, dict):
            logger.warning("Scout policy blob is not an object, using defaults")
            return cls()

        data = {k: v for k, v in data.items() if k in cls.field_names()}
        for _ in range(len(data) + 1):
            try:
                return cls.model_validate(data)
            except ValidationError as exc:
                bad = {err["loc"][0] for err in exc.errors() if err["loc"]}
                # Cross-field failures have no location; drop the band itself
                if not bad:
                    bad = {"min_source_price", "max_source_price"}
                logger.warning(
                    "Invalid stored scout policy fields %s, using defaults for them",
                    sorted(bad),
                )
                data = {k: v for k, v in data.items() if k not in bad}
        return cls()

    def to_stored(self) -> str:
        return json.dumps(self.model_dump(), sort_keys=True)

    def effective_platforms(self) -> list[str]:
        return list(self.platforms) if self.platforms else list(settings.scout_default_platforms)

    def effective_keywords(self) -> list[str]:
        return list(self.keywords) if self.keywords else list(settings.scout_default_keywords)

    def excluded_brands(self) -> set[str]:
        return {b.lower() for b in self.exclude_brands}

    def excluded_categories(self) -> set[str]:
        return {c.lower() for c in self.exclude_categories}


def resolve_interval_ms(value: Any) -> int:
    """
    Resolve the timer interval for a config.

    Anything that is not a finite number at or above the absolute floor
    falls back to the default interval.
    """
    try:
        interval = float(value)
    except (TypeError, ValueError):
        return settings.scout_default_interval_ms
    if not math.isfinite(interval) or interval < settings.scout_min_interval_ms:
        return settings.scout_default_interval_ms
    return int(interval)


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "config"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)
