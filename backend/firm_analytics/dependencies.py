from datetime import datetime
from functools import lru_cache

from firm_analytics.analytics.schemas import EngineConfig
from firm_analytics.common.dates import to_reference_time
from firm_analytics.config import settings


@lru_cache
def get_engine_config() -> EngineConfig:
    return settings.engine_config()


def resolve_now(requested: datetime | None, config: EngineConfig) -> datetime:
    """The caller's "now" if given, otherwise the current reference-zone wall clock."""
    if requested is not None:
        return to_reference_time(requested, config.tz)
    return datetime.now(config.tz).replace(tzinfo=None)
