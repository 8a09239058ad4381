"""CFTC Commitments of Traders adapter (Traders in Financial Futures, Socrata API)."""
import logging
from datetime import datetime, timezone

from models.data import derive_positioning
from models.enums import Asset
from monitor.api.base import SourceAdapter, AdapterError

logger = logging.getLogger("fxbias.cftc")

CONTRACT_CODES = {
    Asset.USD: "098662",
    Asset.EUR: "099741",
    Asset.GBP: "096742",
    Asset.JPY: "097741",
    Asset.AUD: "232741",
    Asset.CAD: "090741",
    Asset.CHF: "092741",
    Asset.NZD: "112741",
    Asset.XAU: "088691",
    Asset.XAG: "084691",
}

# Dealers ~ commercials, asset managers ~ large speculators, leveraged funds ~ fast money
COLUMNS = {
    "commercial_long": "dealer_positions_long_all",
    "commercial_short": "dealer_positions_short_all",
    "non_commercial_long": "asset_mgr_positions_long",
    "non_commercial_short": "asset_mgr_positions_short",
    "retail_long": "lev_money_positions_long",
    "retail_short": "lev_money_positions_short",
}


def _number(row, column):
    try:
        return float(row.get(column) or 0)
    except (TypeError, ValueError):
        return 0.0


class CftcAdapter(SourceAdapter):
    name = "CFTC"
    category = "positioning"
    base_url = "https://publicreporting.cftc.gov/resource"
    supported_assets = tuple(CONTRACT_CODES)

    def __init__(self, settings=None, client=None, rate_limiter=None):
        super().__init__(settings, client, rate_limiter)
        self.dataset = self.settings.options.get("dataset", "gpe5-46if")

    def _items(self, assets):
        return list(assets)

    def _collect_item(self, asset, result):
        rows = self._get_json(f"/{self.dataset}.json", params={
            "cftc_contract_market_code": CONTRACT_CODES[asset],
            "$order": "report_date_as_yyyy_mm_dd DESC",
            "$limit": 1,
        })
        result.positioning.append(self.parse_report(asset, rows))

    def parse_report(self, asset, rows):
        if not isinstance(rows, list) or not rows:
            raise AdapterError(f"no COT report for contract {CONTRACT_CODES[asset]}")
        row = rows[0]
        raw_date = row.get("report_date_as_yyyy_mm_dd")
        if not raw_date:
            raise AdapterError("COT row missing report date")
        report_date = datetime.fromisoformat(raw_date[:19]).replace(tzinfo=timezone.utc)
        open_interest = _number(row, "open_interest_all") or None
        return derive_positioning(
            asset=asset,
            report_date=report_date,
            open_interest=open_interest,
            source=self.name,
            **{field: _number(row, column) for field, column in COLUMNS.items()},
        )
