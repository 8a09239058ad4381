"""Bias scoring and central-bank rate-decision estimates."""
from scoring.engine import ScoringEngine
from scoring.rate_decision import RateDecisionEstimator, UnknownCentralBankError
