"""IPO alerts API adapter and its daily quota gate."""

from .client import IpoAlertsClient
from .fetcher import IpoAlertsAdapter, PageProgress, parse_ipo
from .quota import QuotaGate, QuotaState

__all__ = [
    "IpoAlertsAdapter",
    "IpoAlertsClient",
    "PageProgress",
    "QuotaGate",
    "QuotaState",
    "parse_ipo",
]
