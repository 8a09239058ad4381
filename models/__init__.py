"""Data models."""
from models.enums import (Asset, Indicator, DataClass, Frequency, Signal, Bias, ContrarianSignal,
                          HealthStatus, Severity, DataQuality, Impact, ValidationRuleType)
from models.data import DataPoint, CollectionResult, PositioningData, SentimentData, CalendarEvent
from models.scores import AssetScore, RateDecisionEstimate
from models.health import (SourceHealth, FreshnessCheck, ValidationStatus, DisplayDecision,
                           HealthAlert, TaskResult, SystemHealth)
