"""Dataclass-based domain configuration pattern.

The tracker defines its limits, feature flags and collaborator endpoints as
frozen dataclasses. Defaults are usable out of the box; ``from_env`` reads
overrides from ``TRACKER_*`` environment variables.
"""

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Nested config sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImportConfig:
    """Bulk import limits and defaults."""

    max_items: int = 500
    default_priority: str = "medium"
    # Draft conversion turns working days into estimated hours.
    hours_per_day: int = 8


@dataclass(frozen=True)
class BillingConfig:
    """Where billable-task completions are signalled."""

    webhook_url: str | None = None
    webhook_secret: str | None = None
    timeout_seconds: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)


# ---------------------------------------------------------------------------
# Top-level domain config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrackerConfig:
    """Complete configuration for the construction task tracker.

    Usage::

        config = TrackerConfig.from_env()
        if len(items) > config.imports.max_items:
            raise ValidationError(...)
    """

    imports: ImportConfig = field(default_factory=ImportConfig)
    billing: BillingConfig = field(default_factory=BillingConfig)

    # Feature flags
    auto_create_tables: bool = True

    @classmethod
    def from_env(cls, prefix: str = "TRACKER_") -> "TrackerConfig":
        """Create config from environment variables.

        Example: TRACKER_IMPORT_MAX_ITEMS=1000
        """
        imports = ImportConfig(
            max_items=_env_int(f"{prefix}IMPORT_MAX_ITEMS", ImportConfig.max_items),
            hours_per_day=_env_int(f"{prefix}HOURS_PER_DAY", ImportConfig.hours_per_day),
        )
        billing = BillingConfig(
            webhook_url=os.getenv(f"{prefix}BILLING_WEBHOOK_URL") or None,
            webhook_secret=os.getenv(f"{prefix}BILLING_WEBHOOK_SECRET") or None,
        )
        return cls(
            imports=imports,
            billing=billing,
            auto_create_tables=_env_bool(f"{prefix}AUTO_CREATE_TABLES", True),
        )
