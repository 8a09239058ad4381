"""Retail positioning from the Myfxbook community outlook."""
import logging
import os
from dataclasses import dataclass

from models.data import SentimentData
from models.enums import Asset
from monitor.api.base import SourceAdapter, AdapterError

logger = logging.getLogger("fxbias.sentiment")

# symbol -> (asset, inverted). Long USDJPY is short JPY.
SYMBOLS = {
    "EURUSD": (Asset.EUR, False),
    "GBPUSD": (Asset.GBP, False),
    "USDJPY": (Asset.JPY, True),
    "AUDUSD": (Asset.AUD, False),
    "USDCAD": (Asset.CAD, True),
    "USDCHF": (Asset.CHF, True),
    "NZDUSD": (Asset.NZD, False),
    "XAUUSD": (Asset.XAU, False),
    "XAGUSD": (Asset.XAG, False),
}


@dataclass(frozen=True)
class OutlookRequest:
    assets: frozenset

    def __str__(self):
        return "community-outlook"


class RetailSentimentAdapter(SourceAdapter):
    name = "SENTIMENT"
    category = "sentiment"
    base_url = "https://www.myfxbook.com/api"
    supported_assets = tuple(asset for asset, _ in SYMBOLS.values())
    reliability = 0.8

    def __init__(self, settings=None, client=None, rate_limiter=None, session=None):
        super().__init__(settings, client, rate_limiter)
        self.session = session or os.environ.get(self.settings.options.get("session_env", "MYFXBOOK_SESSION"))

    def _preflight(self):
        if not self.session:
            raise AdapterError("Myfxbook session not configured")

    def _items(self, assets):
        # One request covers every symbol
        return [OutlookRequest(frozenset(assets))] if assets else []

    def _collect_item(self, request, result):
        data = self._get_json("/get-community-outlook.json", params={"session": self.session})
        result.sentiment.extend(self.parse_outlook(data, request.assets))

    def parse_outlook(self, data, assets=None):
        if not isinstance(data, dict):
            raise AdapterError("unexpected community outlook payload")
        if data.get("error"):
            raise AdapterError(data.get("message") or "community outlook returned an error")

        records = []
        for sym in data.get("symbols", []):
            mapping = SYMBOLS.get(str(sym.get("name", "")).upper())
            if mapping is None:
                continue
            asset, inverted = mapping
            if assets and asset not in assets:
                continue
            try:
                long_pct = float(sym["longPercentage"])
                short_pct = float(sym["shortPercentage"])
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping malformed outlook row: {sym}")
                continue
            if inverted:
                long_pct, short_pct = short_pct, long_pct
            records.append(SentimentData(
                asset=asset,
                long_percentage=long_pct,
                short_percentage=short_pct,
                source=self.name,
                reliability=self.reliability,
            ))
        if not records:
            raise AdapterError("community outlook contained no tracked symbols")
        return records
