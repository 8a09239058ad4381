"""Enums for assets, indicators, signals and health states."""
from enum import Enum


class Asset(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    JPY = "JPY"
    AUD = "AUD"
    CAD = "CAD"
    CHF = "CHF"
    NZD = "NZD"
    CNY = "CNY"
    XAU = "XAU"
    XAG = "XAG"

    @property
    def is_metal(self):
        return self in (Asset.XAU, Asset.XAG)


class Indicator(str, Enum):
    UNEMPLOYMENT = "UNEMPLOYMENT"
    INFLATION_CPI = "INFLATION_CPI"
    GDP_GROWTH = "GDP_GROWTH"
    INTEREST_RATE = "INTEREST_RATE"
    PMI_MANUFACTURING = "PMI_MANUFACTURING"
    PMI_SERVICES = "PMI_SERVICES"
    RETAIL_SALES = "RETAIL_SALES"
    INDUSTRIAL_PRODUCTION = "INDUSTRIAL_PRODUCTION"
    CONSUMER_CONFIDENCE = "CONSUMER_CONFIDENCE"
    TRADE_BALANCE = "TRADE_BALANCE"
    # Market prices
    CURRENCY_RATE = "CURRENCY_RATE"
    PRECIOUS_METAL_PRICE = "PRECIOUS_METAL_PRICE"

    @property
    def data_class(self):
        if self in (Indicator.CURRENCY_RATE, Indicator.PRECIOUS_METAL_PRICE):
            return DataClass.PRICE
        return DataClass.ECONOMIC


class DataClass(str, Enum):
    """Staleness class used by the freshness monitor."""
    PRICE = "price"
    ECONOMIC = "economic"
    POSITIONING = "positioning"
    SENTIMENT = "sentiment"
    DEFAULT = "default"


class Frequency(str, Enum):
    REALTIME = "realtime"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class Signal(str, Enum):
    STRONG_SELL = "STRONG_SELL"
    SELL = "SELL"
    HOLD = "HOLD"
    BUY = "BUY"
    STRONG_BUY = "STRONG_BUY"


class Bias(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class ContrarianSignal(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class HealthStatus(str, Enum):
    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class Severity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class DataQuality(str, Enum):
    GOOD = "GOOD"
    DEGRADED = "DEGRADED"
    NO_DATA = "NO_DATA"


class Impact(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ValidationRuleType(str, Enum):
    REQUIRED = "REQUIRED"
    RANGE = "RANGE"
    FORMAT = "FORMAT"
    LOGICAL = "LOGICAL"
