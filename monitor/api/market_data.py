"""Spot FX and metal prices from Yahoo Finance (yfinance).

No API key required. The library does its own HTTP, so this adapter spaces
and retries calls itself with the shared limiter and retry helper.
"""
import logging
import math
from datetime import datetime, timezone

from models.data import DataPoint
from models.enums import Asset, Indicator, Frequency
from monitor.api.base import SourceAdapter, AdapterError
from utils.http_client import APIError, call_with_retries

logger = logging.getLogger("fxbias.market_data")

# USD/XXX tickers (JPY=X, CAD=X, ...) are quoted as units of the asset per dollar
TICKERS = {
    Asset.USD: "DX-Y.NYB",
    Asset.EUR: "EURUSD=X",
    Asset.GBP: "GBPUSD=X",
    Asset.JPY: "JPY=X",
    Asset.AUD: "AUDUSD=X",
    Asset.CAD: "CAD=X",
    Asset.CHF: "CHF=X",
    Asset.NZD: "NZDUSD=X",
    Asset.CNY: "CNY=X",
    Asset.XAU: "GC=F",
    Asset.XAG: "SI=F",
}


class MarketDataAdapter(SourceAdapter):
    name = "MARKET_DATA"
    category = "price"
    uses_http = False
    supported_assets = tuple(TICKERS)

    def _items(self, assets):
        return list(assets)

    def _collect_item(self, asset, result):
        ticker = TICKERS[asset]
        closes = call_with_retries(
            lambda: self._download(ticker),
            attempts=self.settings.retry_attempts,
            backoff_base_ms=self.settings.backoff_base_ms,
            backoff_max_ms=self.settings.backoff_max_ms,
            rate_limiter=self.rate_limiter,
            label=f"history {ticker}",
            source=self.name,
        )
        result.points.append(self.build_point(asset, closes))

    def _download(self, ticker):
        import yfinance as yf

        try:
            df = yf.Ticker(ticker).history(period="5d", interval="1d")
        except Exception as e:
            raise APIError(f"yfinance error for {ticker}: {e}", source=self.name) from e
        if df is None or df.empty:
            raise APIError(f"yfinance returned no rows for {ticker}", source=self.name)
        return [float(v) for v in df["Close"].tolist() if not math.isnan(v)]

    def build_point(self, asset, closes):
        """Quote the latest close as the asset's rate; for USD/XXX tickers that is XXX per USD."""
        if not closes:
            raise AdapterError(f"no closing prices for {asset.value}")
        ticker = TICKERS[asset]
        indicator = Indicator.PRECIOUS_METAL_PRICE if asset.is_metal else Indicator.CURRENCY_RATE
        now = datetime.now(timezone.utc)
        return DataPoint(
            asset=asset,
            indicator=indicator,
            source=self.name,
            actual=closes[-1],
            previous=closes[-2] if len(closes) > 1 else None,
            unit="USD/oz" if asset.is_metal else ticker,
            frequency=Frequency.REALTIME,
            release_date=now,
            importance_weight=2,
            confidence_level=0.9,
            timestamp=now,
        )

