"""Declarative validation rules for collected data points."""
import math
import re
from dataclasses import dataclass, field, fields
from datetime import timedelta

from models.data import DataPoint
from models.enums import ValidationRuleType
from utils.constants import utcnow

_POINT_FIELDS = {f.name for f in fields(DataPoint)}


@dataclass(frozen=True)
class ValidationRule:
    """One check against one DataPoint field.

    RANGE takes `min`/`max` parameters, FORMAT a `pattern`, LOGICAL a
    `check` callable receiving the whole point.
    """
    field: str
    rule_type: ValidationRuleType
    parameters: dict = field(default_factory=dict)
    message: str = ""

    def __post_init__(self):
        if self.field not in _POINT_FIELDS:
            raise ValueError(f"Unknown DataPoint field in validation rule: {self.field}")
        if self.rule_type == ValidationRuleType.FORMAT and "pattern" not in self.parameters:
            raise ValueError("FORMAT rule needs a 'pattern' parameter")
        if self.rule_type == ValidationRuleType.LOGICAL and not callable(self.parameters.get("check")):
            raise ValueError("LOGICAL rule needs a callable 'check' parameter")

    def check(self, point):
        value = getattr(point, self.field)
        if self.rule_type == ValidationRuleType.REQUIRED:
            return value is not None and value != ""
        if value is None:
            # Presence is REQUIRED's job
            return True
        if self.rule_type == ValidationRuleType.RANGE:
            try:
                number = float(value)
            except (TypeError, ValueError):
                return False
            lo = self.parameters.get("min")
            hi = self.parameters.get("max")
            if lo is not None and number < lo:
                return False
            if hi is not None and number > hi:
                return False
            return True
        if self.rule_type == ValidationRuleType.FORMAT:
            text = value.value if hasattr(value, "value") else str(value)
            return re.fullmatch(self.parameters["pattern"], text) is not None
        return bool(self.parameters["check"](point))

    def describe(self):
        return self.message or f"{self.field} failed {self.rule_type.value} check"


def _finite_actual(point):
    return isinstance(point.actual, (int, float)) and math.isfinite(point.actual)


def _not_from_future(point):
    return point.release_date <= utcnow() + timedelta(days=1)


DEFAULT_RULES = (
    ValidationRule("asset", ValidationRuleType.REQUIRED, message="asset is required"),
    ValidationRule("indicator", ValidationRuleType.REQUIRED, message="indicator is required"),
    ValidationRule("actual", ValidationRuleType.REQUIRED, message="actual value is required"),
    ValidationRule("source", ValidationRuleType.FORMAT, {"pattern": r"[A-Z][A-Z0-9_]*"},
                   "source must be an upper-case identifier"),
    ValidationRule("importance_weight", ValidationRuleType.RANGE, {"min": 1, "max": 5},
                   "importance weight must be 1-5"),
    ValidationRule("confidence_level", ValidationRuleType.RANGE, {"min": 0, "max": 1},
                   "confidence level must be 0-1"),
    ValidationRule("actual", ValidationRuleType.LOGICAL, {"check": _finite_actual},
                   "actual must be a finite number"),
    ValidationRule("release_date", ValidationRuleType.LOGICAL, {"check": _not_from_future},
                   "release date is in the future"),
)


def validate_point(point, rules=DEFAULT_RULES):
    """Return (passed, failure messages) for a point against a rule set."""
    failures = [rule.describe() for rule in rules if not rule.check(point)]
    return not failures, failures
