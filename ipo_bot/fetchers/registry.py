"""Name-to-adapter registry and factory."""

import logging

from ipo_bot.models.config import AppConfig
from ipo_bot.storage.activity import ActivityLog

from .base import SourceAdapter
from .chittorgarh import ChittorgarhAdapter
from .groww import GrowwAdapter
from .investorgain import InvestorgainAdapter
from .ipoalerts import IpoAlertsAdapter, QuotaGate
from .ipowatch import IpoWatchAdapter
from .nse import NseAdapter


logger = logging.getLogger(__name__)

ADAPTER_CLASSES: dict[str, type[SourceAdapter]] = {
    cls.name: cls
    for cls in (
        NseAdapter,
        InvestorgainAdapter,
        ChittorgarhAdapter,
        GrowwAdapter,
        IpoWatchAdapter,
        IpoAlertsAdapter,
    )
}

# Sources gated by a daily request budget
RATE_LIMITED_SOURCES = frozenset({IpoAlertsAdapter.name})


def available_sources() -> list[str]:
    return sorted(ADAPTER_CLASSES)


def build_adapters(
    config: AppConfig,
    activity: ActivityLog,
    quota_gate: QuotaGate,
    names: list[str] | None = None,
) -> dict[str, SourceAdapter]:
    """Instantiate adapters by name, each with its own fetch settings."""
    adapters: dict[str, SourceAdapter] = {}
    for name in names or available_sources():
        cls = ADAPTER_CLASSES.get(name)
        if cls is None:
            logger.warning(f"Unknown source '{name}', not registered")
            continue

        fetch_config = config.fetch_config_for(name)
        if cls is IpoAlertsAdapter:
            adapters[name] = IpoAlertsAdapter(config.ipoalerts, quota_gate, config=fetch_config, activity=activity)
        else:
            adapters[name] = cls(config=fetch_config, activity=activity)
    return adapters
