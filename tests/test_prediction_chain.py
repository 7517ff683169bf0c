"""Tests for the prediction fallback chain."""

from datetime import datetime
from unittest.mock import Mock

import pytest
import requests
from hypothesis import given
from hypothesis import strategies as st

from src.models.market_data import MarketSnapshot
from src.models.trading_signal import Action, PredictionResult, PredictionSource
from src.services.prediction_chain import (
    HeuristicPredictor,
    HttpPredictor,
    PredictionFallbackChain,
    PredictionOutcome,
    heuristic_prediction,
    run_chain,
)
from src.utils.config import PredictionConfig
from src.utils.event_store import PREDICTION_COMPLETE, PREDICTION_FALLBACK, EventStore


class FakeProvider:
    """Provider that counts calls and returns a canned outcome."""

    def __init__(self, source, action=Action.BUY, error=None):
        self.source = source
        self.action = action
        self.error = error
        self.calls = 0

    def __call__(self, asset, features, timeout_ms=None):
        self.calls += 1
        if self.error:
            return PredictionOutcome.failure(self.source, self.error)
        return PredictionOutcome.success(
            PredictionResult(
                action=self.action,
                confidence=0.9,
                price_target=features.price_usd * 1.1,
                stop_loss=features.price_usd,
                source=self.source,
            )
        )


class ExplodingProvider:
    """Provider that raises instead of returning an outcome."""

    source = PredictionSource.PRIMARY

    def __call__(self, asset, features, timeout_ms=None):
        raise RuntimeError("model server returned garbage")


def _unreachable_session():
    session = Mock(spec=requests.Session)
    session.post.side_effect = requests.ConnectionError("connection refused")
    return session


class TestHeuristicPrediction:
    """Tests for the feature-only prediction."""

    def test_oversold_calls_for_rebound(self, make_snapshot):
        result = heuristic_prediction(make_snapshot(price=100, change=-12))

        assert result.action == Action.BUY
        assert result.price_target == pytest.approx(102.0)
        assert result.reasoning.startswith("Oversold")

    def test_overbought_calls_for_pullback(self, make_snapshot):
        result = heuristic_prediction(make_snapshot(price=100, change=12))

        assert result.action == Action.SELL
        assert result.price_target == pytest.approx(98.0)

    def test_momentum_sets_target_and_action(self, make_snapshot):
        result = heuristic_prediction(make_snapshot(price=100, change=6))

        assert result.action == Action.BUY
        assert result.price_target == pytest.approx(100.6)
        assert result.reasoning == "Momentum +6.00% supports upside"

    def test_flat_market_holds(self, make_snapshot):
        result = heuristic_prediction(make_snapshot(price=100, change=1))

        assert result.action == Action.HOLD
        assert result.reasoning == "No clear momentum"

    def test_levels_follow_band(self, make_snapshot):
        result = heuristic_prediction(make_snapshot(price=100, change=0), band_pct=0.1)

        assert result.price_target == pytest.approx(100.0)
        assert result.stop_loss == pytest.approx(90.0)
        assert result.take_profit == pytest.approx(110.0)
        assert result.confidence == 0.6
        assert result.source == PredictionSource.HEURISTIC
        assert result.risk_score is None


class TestHttpPredictor:
    """Test suite for HttpPredictor."""

    def test_not_configured(self, make_snapshot):
        outcome = HttpPredictor(PredictionSource.PRIMARY, None, 10000)("solana", make_snapshot())
        assert not outcome.ok
        assert outcome.error == "not_configured"

    def test_successful_prediction(self, make_snapshot, json_response):
        session = Mock(spec=requests.Session)
        session.post.return_value = json_response(
            {"action": "buy", "confidence": 0.8, "price_target": 110, "reasoning": "model says up"}
        )
        predictor = HttpPredictor(
            PredictionSource.PRIMARY, "https://predict.test/v1", 10000, session=session
        )

        outcome = predictor("solana", make_snapshot(price=100, change=4))

        assert outcome.ok
        result = outcome.result
        assert result.action == Action.BUY
        assert result.source == PredictionSource.PRIMARY
        assert result.stop_loss == pytest.approx(104.5)
        assert result.take_profit == pytest.approx(115.5)
        assert result.reasoning == "model says up"

        args, kwargs = session.post.call_args
        assert args[0] == "https://predict.test/v1"
        assert kwargs["timeout"] == 10.0
        assert kwargs["json"]["symbol"] == "SOL"
        assert kwargs["json"]["current_price"] == 100
        assert kwargs["json"]["rsi"] == 58

    def test_alternate_field_names_and_clamping(self, make_snapshot, json_response):
        session = Mock(spec=requests.Session)
        session.post.return_value = json_response(
            {
                "signal": "SELL",
                "confidence": 1.7,
                "predicted_price": 95,
                "stop_loss": 99,
                "risk_score": 140,
            }
        )
        predictor = HttpPredictor(
            PredictionSource.SECONDARY, "https://backup.test", 5000, session=session
        )

        result = predictor("solana", make_snapshot()).result

        assert result.action == Action.SELL
        assert result.confidence == 1.0
        assert result.price_target == 95.0
        assert result.stop_loss == 99.0
        assert result.risk_score == 100.0

    def test_per_call_timeout_override(self, make_snapshot, json_response):
        session = Mock(spec=requests.Session)
        session.post.return_value = json_response(
            {"action": "HOLD", "confidence": 0.5, "price_target": 100}
        )
        predictor = HttpPredictor(PredictionSource.PRIMARY, "https://p.test", 10000, session=session)

        predictor("solana", make_snapshot(), timeout_ms=2500)

        assert session.post.call_args.kwargs["timeout"] == 2.5

    def test_timeout(self, make_snapshot):
        session = Mock(spec=requests.Session)
        session.post.side_effect = requests.Timeout("read timed out")
        predictor = HttpPredictor(PredictionSource.PRIMARY, "https://p.test", 10000, session=session)

        outcome = predictor("solana", make_snapshot())

        assert not outcome.ok
        assert outcome.error == "timeout after 10.0s"

    def test_connection_failure(self, make_snapshot):
        predictor = HttpPredictor(
            PredictionSource.PRIMARY, "https://p.test", 10000, session=_unreachable_session()
        )
        outcome = predictor("solana", make_snapshot())
        assert outcome.error.startswith("request failed")

    @pytest.mark.parametrize(
        "payload",
        [
            {"action": "MAYBE", "confidence": 0.5, "price_target": 100},
            {"action": "BUY", "price_target": 100},
            {"action": "BUY", "confidence": 0.5},
            {"action": "BUY", "confidence": 0.5, "price_target": -1},
            [1, 2],
            "BUY",
            None,
            {"action": "BUY", "confidence": float("nan"), "price_target": 101},
            {"action": "BUY", "confidence": 0.5, "price_target": float("inf")},
            {"action": "BUY", "confidence": 0.5, "price_target": 100, "stop_loss": float("nan")},
            {"action": "SELL", "confidence": 0.5, "price_target": 100, "risk_score": float("-inf")},
        ],
    )
    def test_invalid_response(self, make_snapshot, json_response, payload):
        session = Mock(spec=requests.Session)
        session.post.return_value = json_response(payload)
        predictor = HttpPredictor(PredictionSource.PRIMARY, "https://p.test", 10000, session=session)

        outcome = predictor("solana", make_snapshot())

        assert not outcome.ok
        assert outcome.error.startswith("invalid response")


class TestRunChain:
    def test_first_success_wins(self):
        calls = []

        def attempt(name, ok):
            def _call():
                calls.append(name)
                if ok:
                    return PredictionOutcome(source=PredictionSource.SECONDARY, result=Mock())
                return PredictionOutcome.failure(PredictionSource.PRIMARY, "down")

            return _call

        failures = []
        outcome = run_chain(
            [attempt("a", False), attempt("b", True), attempt("c", True)],
            on_failure=failures.append,
        )

        assert outcome.ok
        assert calls == ["a", "b"]
        assert [f.error for f in failures] == ["down"]

    def test_all_fail(self):
        assert run_chain([lambda: PredictionOutcome.failure(PredictionSource.PRIMARY, "x")]) is None


class TestPredictionFallbackChain:
    """Test suite for PredictionFallbackChain."""

    def test_primary_success_skips_later_tiers(self, make_snapshot):
        primary = FakeProvider(PredictionSource.PRIMARY)
        secondary = FakeProvider(PredictionSource.SECONDARY)
        heuristic = FakeProvider(PredictionSource.HEURISTIC)
        chain = PredictionFallbackChain(providers=[primary, secondary, heuristic])

        result = chain.predict("solana", make_snapshot())

        assert result.source == PredictionSource.PRIMARY
        assert (primary.calls, secondary.calls, heuristic.calls) == (1, 0, 0)

    def test_secondary_answers_when_primary_fails(self, make_snapshot):
        primary = FakeProvider(PredictionSource.PRIMARY, error="timeout")
        secondary = FakeProvider(PredictionSource.SECONDARY, action=Action.SELL)
        chain = PredictionFallbackChain(
            providers=[primary, secondary, HeuristicPredictor()], event_store=EventStore()
        )

        result = chain.predict("solana", make_snapshot())

        assert result.source == PredictionSource.SECONDARY
        assert result.action == Action.SELL
        fallbacks = chain.event_store.get_events_by_type(PREDICTION_FALLBACK)
        assert [e.context["source"] for e in fallbacks] == ["PRIMARY"]

    def test_each_tier_is_tried_once(self, make_snapshot):
        providers = [
            FakeProvider(PredictionSource.PRIMARY, error="down"),
            FakeProvider(PredictionSource.SECONDARY, error="down"),
        ]
        chain = PredictionFallbackChain(providers=providers)

        result = chain.predict("solana", make_snapshot())

        assert [p.calls for p in providers] == [1, 1]
        assert result.source == PredictionSource.HEURISTIC

    def test_unreachable_services_fall_back_to_heuristic(self, make_snapshot):
        store = EventStore()
        chain = PredictionFallbackChain(
            providers=[
                HttpPredictor(
                    PredictionSource.PRIMARY, "https://p.test", 10000, session=_unreachable_session()
                ),
                HttpPredictor(
                    PredictionSource.SECONDARY, "https://s.test", 5000, session=_unreachable_session()
                ),
                HeuristicPredictor(),
            ],
            event_store=store,
        )

        result = chain.predict("solana", make_snapshot(price=100, change=2))

        assert result is not None
        assert result.source == PredictionSource.HEURISTIC
        assert result.confidence == 0.6
        assert len(store.get_events_by_type(PREDICTION_FALLBACK)) == 2
        completed = store.get_events_by_type(PREDICTION_COMPLETE)
        assert completed[0].context == {"asset": "solana", "source": "HEURISTIC"}

    def test_raising_provider_degrades_to_next_tier(self, make_snapshot):
        store = EventStore()
        chain = PredictionFallbackChain(
            providers=[ExplodingProvider(), HeuristicPredictor()], event_store=store
        )

        result = chain.predict("solana", make_snapshot())

        assert result.source == PredictionSource.HEURISTIC
        fallback = store.get_events_by_type(PREDICTION_FALLBACK)[0]
        assert fallback.context["source"] == "PRIMARY"
        assert fallback.context["reason"].startswith("unexpected error: RuntimeError")

    @pytest.mark.parametrize(
        "body",
        [
            [1, 2],
            "not json object",
            {"action": "BUY", "confidence": float("nan"), "price_target": 101},
        ],
    )
    def test_malformed_primary_body_falls_back(self, make_snapshot, json_response, body):
        session = Mock(spec=requests.Session)
        session.post.return_value = json_response(body)
        chain = PredictionFallbackChain(
            providers=[
                HttpPredictor(PredictionSource.PRIMARY, "https://p.test", 10000, session=session),
                HeuristicPredictor(),
            ]
        )

        result = chain.predict("solana", make_snapshot())

        assert result.source == PredictionSource.HEURISTIC
        assert 0.0 <= result.confidence <= 1.0

    def test_default_providers_without_endpoints(self, make_snapshot):
        chain = PredictionFallbackChain(settings=PredictionConfig())

        assert [p.source for p in chain.providers] == [
            PredictionSource.PRIMARY,
            PredictionSource.SECONDARY,
            PredictionSource.HEURISTIC,
        ]
        assert chain.predict("solana", make_snapshot()).source == PredictionSource.HEURISTIC

    def test_timeout_is_passed_to_providers(self, make_snapshot):
        provider = Mock(return_value=PredictionOutcome.success(heuristic_prediction(make_snapshot())))
        chain = PredictionFallbackChain(providers=[provider])

        chain.predict("solana", make_snapshot(), timeout_ms=1500)

        provider.assert_called_once_with("solana", make_snapshot(), 1500)

    @given(
        price=st.floats(min_value=0.0001, max_value=1e6, allow_nan=False),
        change=st.floats(min_value=-90, max_value=500, allow_nan=False),
    )
    def test_fallback_depends_only_on_features(self, price, change):
        """With remote tiers down, the same features always give the same prediction."""
        snapshot = MarketSnapshot("solana", price, change, 1e9, 1e10, datetime(2024, 1, 1))
        chain = PredictionFallbackChain(
            providers=[
                FakeProvider(PredictionSource.PRIMARY, error="down"),
                FakeProvider(PredictionSource.SECONDARY, error="down"),
                HeuristicPredictor(),
            ]
        )

        first = chain.predict("solana", snapshot)
        second = chain.predict("solana", snapshot)

        assert first == second
        assert first.source == PredictionSource.HEURISTIC
        assert first == heuristic_prediction(snapshot)
