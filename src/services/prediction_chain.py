"""Prediction fallback chain: primary predictor, secondary predictor, local heuristic."""

import math
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from src.models.market_data import MarketSnapshot, symbol_for
from src.models.trading_signal import Action, PredictionResult, PredictionSource
from src.services.technical_heuristic import OVERBOUGHT_RSI, OVERSOLD_RSI, rsi_proxy
from src.utils.config import PredictionConfig, config
from src.utils.event_store import PREDICTION_COMPLETE, PREDICTION_FALLBACK, EventStore
from src.utils.logger import StructuredLogger
from src.utils.trace_context import get_current_trace

HEURISTIC_CONFIDENCE = 0.6
HEURISTIC_MOVE_PCT = 2.0
MOMENTUM_ACTION_PCT = 5.0


@dataclass(frozen=True)
class PredictionOutcome:
    """Tagged result of one tier: a prediction on success, a reason on failure."""

    source: PredictionSource
    result: PredictionResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None

    @classmethod
    def success(cls, result: PredictionResult) -> "PredictionOutcome":
        return cls(source=result.source, result=result)

    @classmethod
    def failure(cls, source: PredictionSource, error: str) -> "PredictionOutcome":
        return cls(source=source, error=error)


class PredictionProvider(Protocol):
    source: PredictionSource

    def __call__(
        self, asset: str, features: MarketSnapshot, timeout_ms: int | None = None
    ) -> PredictionOutcome: ...


def _finite(value: Any, name: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {number}")
    return number


def run_chain(
    attempts: Sequence[Callable[[], PredictionOutcome]],
    on_failure: Callable[[PredictionOutcome], None] | None = None,
) -> PredictionOutcome | None:
    """
    Evaluate attempts left to right, returning the first success.

    Each attempt is called at most once. Failures are passed to on_failure.
    Returns None when every attempt failed.
    """
    for attempt in attempts:
        outcome = attempt()
        if outcome.ok:
            return outcome
        if on_failure:
            on_failure(outcome)
    return None


def heuristic_prediction(features: MarketSnapshot, band_pct: float = 0.05) -> PredictionResult:
    """
    Deterministic prediction from snapshot features alone.

    Oversold/overbought readings of the RSI proxy call for a 2% move;
    otherwise the target follows a tenth of the 24h momentum and the
    action follows strong momentum.
    """
    price = features.price_usd
    change = features.change_24h_pct
    rsi = rsi_proxy(change)

    if rsi < OVERSOLD_RSI:
        action = Action.BUY
        target = price * (1 + HEURISTIC_MOVE_PCT / 100)
        reasoning = f"Oversold (RSI proxy {rsi:.0f}), expecting rebound"
    elif rsi > OVERBOUGHT_RSI:
        action = Action.SELL
        target = price * (1 - HEURISTIC_MOVE_PCT / 100)
        reasoning = f"Overbought (RSI proxy {rsi:.0f}), expecting pullback"
    else:
        target = price * (1 + (change / 100) * 0.1)
        if change > MOMENTUM_ACTION_PCT:
            action = Action.BUY
            reasoning = f"Momentum {change:+.2f}% supports upside"
        elif change < -MOMENTUM_ACTION_PCT:
            action = Action.SELL
            reasoning = f"Momentum {change:+.2f}% supports downside"
        else:
            action = Action.HOLD
            reasoning = "No clear momentum"

    return PredictionResult(
        action=action,
        confidence=HEURISTIC_CONFIDENCE,
        price_target=target,
        stop_loss=target * (1 - band_pct),
        take_profit=target * (1 + band_pct),
        source=PredictionSource.HEURISTIC,
        reasoning=reasoning,
    )


class HeuristicPredictor:
    """Final tier; never fails."""

    source = PredictionSource.HEURISTIC

    def __init__(self, band_pct: float = 0.05):
        self.band_pct = band_pct

    def __call__(
        self, asset: str, features: MarketSnapshot, timeout_ms: int | None = None
    ) -> PredictionOutcome:
        return PredictionOutcome.success(heuristic_prediction(features, self.band_pct))


class HttpPredictor:
    """Remote prediction service called with a JSON POST of snapshot features."""

    def __init__(
        self,
        source: PredictionSource,
        url: str | None,
        timeout_ms: int,
        band_pct: float = 0.05,
        session: requests.Session | None = None,
    ):
        self.source = source
        self.url = url
        self.timeout_ms = timeout_ms
        self.band_pct = band_pct
        self.session = session or requests.Session()

    def __call__(
        self, asset: str, features: MarketSnapshot, timeout_ms: int | None = None
    ) -> PredictionOutcome:
        if not self.url:
            return PredictionOutcome.failure(self.source, "not_configured")

        payload = {
            "symbol": symbol_for(asset),
            "asset": asset,
            "timeframe": "1h",
            "current_price": features.price_usd,
            "volume_24h": features.volume_24h_usd,
            "market_cap": features.market_cap_usd,
            "price_change_24h": features.change_24h_pct,
            "rsi": rsi_proxy(features.change_24h_pct),
        }
        timeout = (timeout_ms or self.timeout_ms) / 1000

        try:
            response = self.session.post(self.url, json=payload, timeout=timeout)
            response.raise_for_status()
            return PredictionOutcome.success(self._parse(response.json()))
        except requests.Timeout:
            return PredictionOutcome.failure(self.source, f"timeout after {timeout:.1f}s")
        except requests.RequestException as e:
            return PredictionOutcome.failure(self.source, f"request failed: {e}")
        except (ValueError, KeyError, TypeError) as e:
            return PredictionOutcome.failure(self.source, f"invalid response: {e}")

    def _parse(self, data: Any) -> PredictionResult:
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        action = Action(str(data.get("action") or data.get("signal")).upper())
        target = data.get("price_target", data.get("predicted_price"))
        if target is None or data.get("confidence") is None:
            raise KeyError("price_target and confidence are required")
        target = _finite(target, "price_target")
        if target <= 0:
            raise ValueError(f"price_target must be positive, got {target}")

        confidence = min(max(_finite(data["confidence"], "confidence"), 0.0), 1.0)
        stop_loss = data.get("stop_loss")
        take_profit = data.get("take_profit")
        risk_score = data.get("risk_score")
        if risk_score is not None:
            risk_score = min(max(_finite(risk_score, "risk_score"), 0.0), 100.0)
        return PredictionResult(
            action=action,
            confidence=confidence,
            price_target=target,
            stop_loss=(
                _finite(stop_loss, "stop_loss")
                if stop_loss is not None
                else target * (1 - self.band_pct)
            ),
            take_profit=(
                _finite(take_profit, "take_profit")
                if take_profit is not None
                else target * (1 + self.band_pct)
            ),
            risk_score=risk_score,
            source=self.source,
            reasoning=str(data.get("reasoning", "")),
        )


class PredictionFallbackChain:
    """Tries each predictor once, in order, and always yields a prediction."""

    def __init__(
        self,
        providers: list[PredictionProvider] | None = None,
        settings: PredictionConfig | None = None,
        band_pct: float | None = None,
        event_store: EventStore | None = None,
    ):
        """
        Initialize the chain.

        Args:
            providers: Ordered predictors; defaults to primary and secondary
                HTTP predictors from settings followed by the heuristic
            settings: Prediction settings (defaults to the global config)
            band_pct: Stop/target band used by derived levels
            event_store: Optional event store for fallback events
        """
        self.settings = settings or config.prediction
        self.band_pct = config.signals.price_band_pct if band_pct is None else band_pct
        if providers is None:
            providers = [
                HttpPredictor(
                    PredictionSource.PRIMARY,
                    self.settings.primary_url,
                    self.settings.primary_timeout_ms,
                    self.band_pct,
                ),
                HttpPredictor(
                    PredictionSource.SECONDARY,
                    self.settings.secondary_url,
                    self.settings.secondary_timeout_ms,
                    self.band_pct,
                ),
                HeuristicPredictor(self.band_pct),
            ]
        self.providers = providers
        self.event_store = event_store
        self.logger = StructuredLogger("PredictionFallbackChain")

    @staticmethod
    def _attempt(
        provider: PredictionProvider,
        asset: str,
        features: MarketSnapshot,
        timeout_ms: int | None,
    ) -> PredictionOutcome:
        try:
            return provider(asset, features, timeout_ms)
        except Exception as e:
            return PredictionOutcome.failure(
                provider.source, f"unexpected error: {type(e).__name__}: {e}"
            )

    def predict(
        self, asset: str, features: MarketSnapshot, timeout_ms: int | None = None
    ) -> PredictionResult:
        """
        Predict the next move for an asset.

        Args:
            asset: Asset id
            features: Snapshot the predictors work from
            timeout_ms: Per-call timeout overriding each remote tier's default

        Returns:
            The first successful tier's prediction, tagged with its source
        """
        trace_id = get_current_trace()
        start_time = time.time()

        def log_failure(outcome: PredictionOutcome) -> None:
            self.logger.warning(
                f"{outcome.source.value} predictor failed, falling back",
                context={"trace_id": trace_id, "asset": asset, "reason": outcome.error},
            )
            if self.event_store:
                self.event_store.add_event(
                    trace_id=trace_id,
                    event_type=PREDICTION_FALLBACK,
                    component="PredictionFallbackChain",
                    message=f"{outcome.source.value} predictor failed",
                    context={"asset": asset, "source": outcome.source.value, "reason": outcome.error},
                )

        attempts = [
            (lambda provider=provider: self._attempt(provider, asset, features, timeout_ms))
            for provider in self.providers
        ]
        outcome = run_chain(attempts, on_failure=log_failure)
        result = outcome.result if outcome else heuristic_prediction(features, self.band_pct)

        duration_ms = (time.time() - start_time) * 1000
        self.logger.info(
            "Prediction completed",
            context={
                "trace_id": trace_id,
                "asset": asset,
                "source": result.source.value,
                "action": result.action.value,
                "confidence": result.confidence,
            },
        )
        if self.event_store:
            self.event_store.add_event(
                trace_id=trace_id,
                event_type=PREDICTION_COMPLETE,
                component="PredictionFallbackChain",
                message=f"Prediction for {asset} from {result.source.value}",
                context={"asset": asset, "source": result.source.value},
                duration_ms=duration_ms,
            )
        return result
