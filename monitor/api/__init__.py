"""Source adapter registry."""
import logging

from models.settings import AdapterSettings
from monitor.api.base import SourceAdapter, AdapterError
from monitor.api.cftc import CftcAdapter
from monitor.api.fred import FredAdapter
from monitor.api.market_data import MarketDataAdapter
from monitor.api.sentiment import RetailSentimentAdapter

logger = logging.getLogger("fxbias.api")

ADAPTERS = {
    FredAdapter.name: FredAdapter,
    CftcAdapter.name: CftcAdapter,
    MarketDataAdapter.name: MarketDataAdapter,
    RetailSentimentAdapter.name: RetailSentimentAdapter,
}


def build_adapters(source_settings):
    """Instantiate every configured adapter, keyed by name.

    `source_settings` maps adapter name to AdapterSettings. Unknown names are
    skipped with a warning.
    """
    adapters = {}
    for name, settings in source_settings.items():
        cls = ADAPTERS.get(name)
        if cls is None:
            logger.warning(f"No adapter registered for source {name}")
            continue
        if not isinstance(settings, AdapterSettings):
            settings = AdapterSettings.from_dict(name, settings or {})
        adapters[name] = cls(settings)
    return adapters
