"""
Feature Gate Table

Loads the tier x feature matrix from its JSON data file once and serves it
to the resolver. Tiers or keys missing from the file resolve to the most
restrictive value.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from app.config import FEATURE_GATES_PATH, logger
from app.core.entitlements.models import FeatureFlags, SubscriptionTier


class FeatureGateError(Exception):
    """Raised when the feature gate table cannot be loaded."""
    pass


class FeatureGateTable:
    """Immutable mapping of every tier to its complete FeatureFlags."""

    def __init__(self, flags_by_tier: Mapping[SubscriptionTier, FeatureFlags], source: str = "<dict>"):
        self.source = source
        self._flags = {tier: flags_by_tier.get(tier, FeatureFlags()) for tier in SubscriptionTier}

    def __getitem__(self, tier: SubscriptionTier) -> FeatureFlags:
        return self._flags[tier]

    def items(self):
        return self._flags.items()

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], source: str = "<dict>") -> "FeatureGateTable":
        """
        Build a table from raw {tier: {featureKey: value}} data.

        Args:
            raw: Parsed table data
            source: Label used in log and error messages

        Returns:
            FeatureGateTable

        Raises:
            FeatureGateError: If a tier entry has invalid values
        """
        known_keys = set(FeatureFlags.feature_keys())
        flags_by_tier: Dict[SubscriptionTier, FeatureFlags] = {}

        for tier in SubscriptionTier:
            entry = raw.get(tier.value)
            if entry is None:
                logger.warning("Feature gates %s: tier '%s' missing, denying all features", source, tier.value)
                continue

            missing = known_keys - set(entry)
            if missing:
                logger.warning(
                    "Feature gates %s: tier '%s' missing %s, denying those features",
                    source,
                    tier.value,
                    ", ".join(sorted(missing)),
                )
            unknown = set(entry) - known_keys
            if unknown:
                logger.warning(
                    "Feature gates %s: ignoring unknown keys for tier '%s': %s",
                    source,
                    tier.value,
                    ", ".join(sorted(unknown)),
                )

            try:
                flags_by_tier[tier] = FeatureFlags.model_validate(entry)
            except ValidationError as e:
                raise FeatureGateError(f"Invalid feature gates for tier '{tier.value}' in {source}: {e}") from e

        return cls(flags_by_tier, source=source)

    @classmethod
    def from_file(cls, path: Path) -> "FeatureGateTable":
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise FeatureGateError(f"Failed to read feature gates from {path}: {e}") from e
        if not isinstance(raw, dict):
            raise FeatureGateError(f"Feature gates file {path} must contain an object")
        table = cls.from_dict(raw, source=str(path))
        logger.info("Loaded feature gates from %s", path)
        return table


@lru_cache(maxsize=1)
def get_feature_gates(path: Optional[Path] = None) -> FeatureGateTable:
    """Get the process-wide feature gate table (loaded on first use)."""
    return FeatureGateTable.from_file(path or FEATURE_GATES_PATH)


def reload_feature_gates() -> FeatureGateTable:
    get_feature_gates.cache_clear()
    return get_feature_gates()
