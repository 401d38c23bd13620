"""Source adapters and shared fetch primitives."""

from .base import SourceAdapter
from .chittorgarh import ChittorgarhAdapter
from .client import FetchClient, is_transient
from .errors import CredentialError, ParseError, QuotaExhaustedError, SourceError
from .groww import GrowwAdapter
from .investorgain import InvestorgainAdapter
from .ipoalerts import IpoAlertsAdapter, QuotaGate, QuotaState
from .ipowatch import IpoWatchAdapter
from .nse import NseAdapter
from .registry import ADAPTER_CLASSES, RATE_LIMITED_SOURCES, available_sources, build_adapters

__all__ = [
    "ADAPTER_CLASSES",
    "RATE_LIMITED_SOURCES",
    "ChittorgarhAdapter",
    "CredentialError",
    "FetchClient",
    "GrowwAdapter",
    "InvestorgainAdapter",
    "IpoAlertsAdapter",
    "IpoWatchAdapter",
    "NseAdapter",
    "ParseError",
    "QuotaExhaustedError",
    "QuotaGate",
    "QuotaState",
    "SourceAdapter",
    "SourceError",
    "available_sources",
    "build_adapters",
    "is_transient",
]
