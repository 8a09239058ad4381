"""Per-indicator scoring metadata."""
from dataclasses import dataclass
from typing import Optional

from models.enums import Indicator


@dataclass(frozen=True)
class IndicatorConfig:
    positive: bool  # a higher reading is good for the currency
    description: str
    critical_level: Optional[float] = None


INDICATOR_CONFIGS = {
    Indicator.UNEMPLOYMENT: IndicatorConfig(False, "Unemployment rate", 5.0),
    Indicator.INFLATION_CPI: IndicatorConfig(False, "CPI inflation", 3.0),
    Indicator.GDP_GROWTH: IndicatorConfig(True, "GDP growth", 2.0),
    Indicator.INTEREST_RATE: IndicatorConfig(True, "Policy rate"),
    Indicator.PMI_MANUFACTURING: IndicatorConfig(True, "Manufacturing PMI", 50.0),
    Indicator.PMI_SERVICES: IndicatorConfig(True, "Services PMI", 50.0),
    Indicator.RETAIL_SALES: IndicatorConfig(True, "Retail sales"),
    Indicator.INDUSTRIAL_PRODUCTION: IndicatorConfig(True, "Industrial production"),
    Indicator.CONSUMER_CONFIDENCE: IndicatorConfig(True, "Consumer confidence"),
    Indicator.TRADE_BALANCE: IndicatorConfig(True, "Trade balance"),
}

# Prices feed the technical side, not the macro score
MACRO_INDICATORS = frozenset(INDICATOR_CONFIGS)
