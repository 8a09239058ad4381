"""Tests for the bias scoring engine."""
import pytest
from datetime import timedelta

from models.data import SentimentData, derive_positioning
from models.enums import Asset, Bias, ContrarianSignal, DataQuality, Indicator, Signal
from models.settings import CentralBankProfile
from scoring.engine import ScoringEngine, COMPONENT_LIMITS, latest_by_indicator
from conftest import NOW, make_point


@pytest.fixture
def engine():
    return ScoringEngine(profiles=[CentralBankProfile(Asset.USD, "Federal Reserve", inflation_target=2.0)])


def _cot(asset=Asset.EUR):
    """Commercials long, asset managers flat-ish, leveraged funds crowded long."""
    return derive_positioning(
        asset, NOW,
        commercial_long=60000, commercial_short=20000,
        non_commercial_long=30000, non_commercial_short=25000,
        retail_long=50000, retail_short=20000,
        open_interest=200000,
    )


def test_max_possible_matches_weights(engine):
    assert engine.max_possible == pytest.approx(2.1)


class TestEconomic:
    def test_falling_unemployment_is_bullish(self, engine):
        score, bullish, bearish = engine.economic_score(
            [make_point(indicator=Indicator.UNEMPLOYMENT, actual=3.7, previous=3.9)], now=NOW)
        assert score == pytest.approx(2.0)
        assert "Unemployment rate falling (3.9 -> 3.7)" in bullish
        assert "Unemployment rate below 5" in bullish
        assert bearish == []

    def test_surprise_against_forecast(self, engine):
        score, bullish, _ = engine.economic_score(
            [make_point(indicator=Indicator.GDP_GROWTH, actual=2.0, forecast=1.5)], now=NOW)
        assert score == pytest.approx(2.0)
        assert bullish == ["GDP growth came in above forecast (+33.3%)"]

    def test_small_surprise_is_ignored(self, engine):
        score, bullish, bearish = engine.economic_score(
            [make_point(indicator=Indicator.RETAIL_SALES, actual=1.01, forecast=1.0)], now=NOW)
        assert score == 0.0
        assert bullish == bearish == []

    def test_old_points_decay_to_nothing(self, engine):
        old = make_point(indicator=Indicator.UNEMPLOYMENT, actual=3.7, previous=3.9,
                         timestamp=NOW - timedelta(hours=200))
        score, _, _ = engine.economic_score([old], now=NOW)
        assert score == 0.0

    def test_invalid_points_are_ignored(self, engine):
        point = make_point(indicator=Indicator.UNEMPLOYMENT, actual=3.7, previous=3.9, valid=False)
        assert engine.economic_score([point], now=NOW) == (0.0, [], [])
        assert latest_by_indicator([point]) == {}

    def test_prices_do_not_count(self, engine):
        price = make_point(asset=Asset.EUR, indicator=Indicator.CURRENCY_RATE, actual=1.09, previous=1.08)
        assert engine.economic_score([price], now=NOW)[0] == 0.0

    def test_latest_point_per_indicator_wins(self, engine):
        points = [
            make_point(actual=6.0, previous=5.0, timestamp=NOW - timedelta(hours=5)),
            make_point(actual=3.7, previous=3.9, timestamp=NOW - timedelta(hours=1)),
        ]
        assert engine.economic_score(points, now=NOW)[0] > 0

    def test_points_weighted_by_their_own_importance(self, engine):
        def score(unemployment_weight, gdp_weight):
            points = [
                make_point(indicator=Indicator.UNEMPLOYMENT, actual=5.5, previous=5.0,
                           importance_weight=unemployment_weight),
                make_point(indicator=Indicator.GDP_GROWTH, actual=2.5, previous=2.0,
                           importance_weight=gdp_weight),
            ]
            return engine.economic_score(points, now=NOW)[0]

        assert score(5, 5) == pytest.approx(0.0)
        assert score(5, 1) == pytest.approx(-4 / 3)
        assert score(1, 5) == pytest.approx(4 / 3)


class TestPositioning:
    def test_commercials_long_and_crowded_retail(self, engine):
        record = _cot()
        assert record.commercial_sentiment == Bias.BULLISH
        assert record.speculative_sentiment == Bias.NEUTRAL
        assert record.contrarian_signal == ContrarianSignal.SELL

        score, bullish, bearish = engine.positioning_score(record)
        assert score == pytest.approx(0.1)
        assert bullish == ["Smart money (commercial traders) positioned bullish"]
        assert bearish == ["Retail traders overly bullish (contrarian signal)"]

    def test_no_record(self, engine):
        assert engine.positioning_score(None) == (0.0, [], [])


class TestSentiment:
    def test_crowded_long_is_contrarian_bearish(self, engine):
        score, bullish, bearish = engine.sentiment_score([SentimentData(Asset.EUR, 80, 20, "SENTIMENT")])
        assert -1.0 <= score <= -0.5
        assert bearish == ["Retail crowd 80% long (contrarian bearish)"]

    def test_crowded_short_is_contrarian_bullish(self, engine):
        score, bullish, _ = engine.sentiment_score([SentimentData(Asset.EUR, 15, 85, "SENTIMENT")])
        assert 0.5 <= score <= 1.0
        assert bullish == ["Retail crowd 85% short (contrarian bullish)"]

    def test_balanced_crowd_is_mild(self, engine):
        score, bullish, bearish = engine.sentiment_score([SentimentData(Asset.EUR, 55, 45, "SENTIMENT")])
        assert score == pytest.approx(0.05)
        assert bullish == bearish == []

    def test_aggregate_weights_by_reliability(self):
        agg = ScoringEngine.aggregate_sentiment([
            SentimentData(Asset.EUR, 80, 20, "A", reliability=0.8),
            SentimentData(Asset.EUR, 60, 40, "B", reliability=0.2),
            SentimentData(Asset.EUR, 10, 90, "A", reliability=0.8, timestamp=NOW - timedelta(days=400)),
        ])
        assert agg["long_percentage"] == pytest.approx(76.0)
        assert agg["sources"] == ["A", "B"]

    def test_no_records(self, engine):
        assert engine.sentiment_score([]) == (0.0, [], [])


class TestCentralBank:
    def test_hike_and_hot_inflation(self, engine):
        points = [
            make_point(indicator=Indicator.INTEREST_RATE, actual=5.5, previous=5.25),
            make_point(indicator=Indicator.INFLATION_CPI, actual=3.4),
        ]
        score, bullish, bearish = engine.central_bank_score(Asset.USD, points)
        assert score == pytest.approx(1.0)
        assert "Policy rate raised (5.25% -> 5.5%)" in bullish
        assert "Inflation well above 2% target (hawkish pressure)" in bullish

    def test_cut_and_soft_inflation(self, engine):
        points = [
            make_point(asset=Asset.EUR, indicator=Indicator.INTEREST_RATE, actual=3.75, previous=4.0),
            make_point(asset=Asset.EUR, indicator=Indicator.INFLATION_CPI, actual=1.3),
        ]
        score, _, bearish = engine.central_bank_score(Asset.EUR, points)
        assert score == pytest.approx(-0.75)
        assert "Inflation below 2% target" in bearish


class TestAssetScore:
    def test_classify_thresholds(self, engine):
        assert engine.classify(0.6) == Signal.STRONG_BUY
        assert engine.classify(0.2) == Signal.BUY
        assert engine.classify(0.0) == Signal.HOLD
        assert engine.classify(-0.2) == Signal.SELL
        assert engine.classify(-0.7) == Signal.STRONG_SELL

    def test_no_data(self, engine):
        score = engine.calculate_asset_score(Asset.CHF, [], now=NOW)
        assert score.data_quality == DataQuality.NO_DATA
        assert score.confidence == 0.1
        assert score.signal == Signal.HOLD
        assert score.total_score == 0.0

    def test_components_stay_in_bounds(self, engine):
        points = [
            make_point(indicator=i, actual=100.0, previous=1.0, forecast=1.0)
            for i in (Indicator.GDP_GROWTH, Indicator.PMI_MANUFACTURING, Indicator.RETAIL_SALES,
                      Indicator.INTEREST_RATE, Indicator.INFLATION_CPI)
        ]
        score = engine.calculate_asset_score(
            Asset.USD, points, positioning=_cot(Asset.USD),
            sentiment=[SentimentData(Asset.USD, 2, 98, "SENTIMENT")], now=NOW)
        for name, value in score.components.items():
            assert abs(value) <= COMPONENT_LIMITS[name]
        assert -1.0 <= score.normalized_score <= 1.0
        assert 0.0 <= score.confidence <= 1.0

    def test_full_score(self, engine, usd_points):
        score = engine.calculate_asset_score(
            Asset.USD, usd_points, positioning=_cot(Asset.USD),
            sentiment=[SentimentData(Asset.USD, 30, 70, "SENTIMENT")], now=NOW)
        assert score.data_quality == DataQuality.GOOD
        assert score.sources == ["CFTC", "FRED", "SENTIMENT"]
        expected_total = sum(score.components[k] * w for k, w in engine.weights.items())
        assert score.total_score == pytest.approx(expected_total)
        assert score.normalized_score == pytest.approx(expected_total / 2.1)
        assert score.signal == engine.classify(score.normalized_score)
        assert score.confidence > engine.settings.confidence_base
        assert len(score.bullish_factors) == len(set(score.bullish_factors))

    def test_single_input_is_degraded(self, engine):
        score = engine.calculate_asset_score(Asset.EUR, [], positioning=_cot(), now=NOW)
        assert score.data_quality == DataQuality.DEGRADED

    def test_other_assets_points_are_ignored(self, engine, usd_points):
        score = engine.calculate_asset_score(Asset.EUR, usd_points, now=NOW)
        assert score.data_quality == DataQuality.NO_DATA

    def test_calculate_all_sorted(self, engine, usd_points):
        bearish_eur = [make_point(asset=Asset.EUR, indicator=Indicator.UNEMPLOYMENT, actual=7.0, previous=6.5)]
        scores = engine.calculate_all(usd_points + bearish_eur, {}, {}, now=NOW)
        assert [s.asset for s in scores] == [Asset.USD, Asset.EUR]
        scores = engine.calculate_all(usd_points, assets=[Asset.USD, Asset.JPY], now=NOW)
        assert {s.asset for s in scores} == {Asset.USD, Asset.JPY}

    def test_technical_hook(self, usd_points):
        engine = ScoringEngine(technical=lambda asset, points: (5.0, ["Uptrend"], []))
        score = engine.calculate_asset_score(Asset.USD, usd_points, now=NOW)
        assert score.technical_score == 1.0
        assert "Uptrend" in score.bullish_factors

    def test_explain(self, engine):
        score = engine.calculate_asset_score(Asset.EUR, [], positioning=_cot(), now=NOW)
        text = engine.explain(score)
        assert text.startswith("EUR: ")
        assert "  + Smart money (commercial traders) positioned bullish" in text
        assert "  - Retail traders overly bullish (contrarian signal)" in text
        assert "positioning  +0.10" in text

    def test_explain_without_drivers(self, engine):
        text = engine.explain(engine.calculate_asset_score(Asset.NZD, [], now=NOW))
        assert text.endswith("No significant drivers")
