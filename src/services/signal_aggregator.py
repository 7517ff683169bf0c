"""Weighted combination of technical, arbitrage, prediction and venue signals."""

import math
from dataclasses import dataclass

from src.models.market_data import PriceQuote
from src.models.trading_signal import (
    Action,
    ArbitrageOpportunity,
    CompositeSignal,
    ContributingSignals,
    PredictionResult,
    RiskLevel,
    TechnicalSignal,
)
from src.utils.config import config

ACTION_THRESHOLD = 0.3
ARBITRAGE_MIN_PCT = 0.1
HIGH_RISK_SCORE = 70
MEDIUM_RISK_SCORE = 40
REASONING_SEPARATOR = " | "


@dataclass(frozen=True)
class SignalWeights:
    """Share of the composite score each source controls; must sum to 1."""

    technical: float = 0.25
    arbitrage: float = 0.25
    prediction: float = 0.30
    venue_variance: float = 0.20

    def __post_init__(self):
        values = (self.technical, self.arbitrage, self.prediction, self.venue_variance)
        if any(value < 0 for value in values):
            raise ValueError("Signal weights cannot be negative")
        if not math.isclose(sum(values), 1.0, rel_tol=0, abs_tol=1e-9):
            raise ValueError(f"Signal weights must sum to 1.0, got {sum(values)}")

    def total(self) -> float:
        return self.technical + self.arbitrage + self.prediction + self.venue_variance


@dataclass(frozen=True)
class VenueVariancePolicy:
    """
    Direction in which venue price dispersion pushes the composite score.

    The bullish policy reads dispersion as arbitrage-style upside.
    """

    name: str
    sign: float


VARIANCE_POLICIES = {
    "bullish": VenueVariancePolicy("bullish", 1.0),
    "neutral": VenueVariancePolicy("neutral", 0.0),
    "bearish": VenueVariancePolicy("bearish", -1.0),
}


def normalized_variance(quotes: dict[str, PriceQuote]) -> float:
    """Population variance of venue prices over their mean, scaled into [0, 1]."""
    prices = [quote.price for quote in quotes.values()]
    if len(prices) < 2:
        return 0.0
    mean = sum(prices) / len(prices)
    variance = sum((price - mean) ** 2 for price in prices) / len(prices)
    return min(variance / mean, 0.1) * 10


def decide_action(score: float, threshold: float = ACTION_THRESHOLD) -> Action:
    if score > threshold:
        return Action.BUY
    if score < -threshold:
        return Action.SELL
    return Action.HOLD


def risk_level_for(risk_score: float) -> RiskLevel:
    if risk_score > HIGH_RISK_SCORE:
        return RiskLevel.HIGH
    if risk_score > MEDIUM_RISK_SCORE:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _directional(action: Action, magnitude: float) -> float:
    if action is Action.BUY:
        return magnitude
    if action is Action.SELL:
        return -magnitude
    return 0.0


class SignalAggregator:
    """Folds every signal source for an asset into one CompositeSignal."""

    def __init__(
        self,
        weights: SignalWeights | None = None,
        variance_policy: VenueVariancePolicy | str | None = None,
        band_pct: float | None = None,
    ):
        self.weights = weights or SignalWeights()
        if variance_policy is None:
            variance_policy = config.signals.venue_variance_policy
        if isinstance(variance_policy, str):
            if variance_policy not in VARIANCE_POLICIES:
                raise ValueError(f"Unknown venue variance policy: {variance_policy}")
            variance_policy = VARIANCE_POLICIES[variance_policy]
        self.variance_policy = variance_policy
        self.band_pct = config.signals.price_band_pct if band_pct is None else band_pct

    def aggregate(
        self,
        asset: str,
        technical: TechnicalSignal,
        arbitrage: ArbitrageOpportunity | None,
        prediction: PredictionResult,
        venue_quotes: dict[str, PriceQuote] | None,
    ) -> CompositeSignal:
        """
        Combine the signals for an asset.

        A missing arbitrage opportunity or missing venue quotes contribute
        nothing rather than failing.
        """
        reasons = []
        score = 0.0

        technical_term = _directional(
            technical.direction, self.weights.technical * technical.strength
        )
        if technical_term:
            score += technical_term
            reasons.append(f"Technical: {technical.reasoning}")

        if arbitrage is not None and arbitrage.profit_pct > ARBITRAGE_MIN_PCT:
            score += self.weights.arbitrage * min(arbitrage.profit_pct / 10, 1.0)
            reasons.append(
                f"Arbitrage: {arbitrage.profit_pct:.2f}% opportunity "
                f"(buy {arbitrage.buy_venue}, sell {arbitrage.sell_venue})"
            )

        prediction_term = _directional(
            prediction.action, self.weights.prediction * prediction.confidence
        )
        if prediction_term:
            score += prediction_term
            label = prediction.reasoning or f"{prediction.action.value} signal"
            reasons.append(f"Prediction ({prediction.source.value.lower()}): {label}")

        variance = normalized_variance(venue_quotes or {})
        variance_term = self.weights.venue_variance * variance * self.variance_policy.sign
        if variance_term:
            score += variance_term
            reasons.append(f"Venues: price dispersion {variance:.2f} ({self.variance_policy.name})")

        score = min(max(score, -1.0), 1.0)
        action = decide_action(score)

        if prediction.risk_score is not None:
            risk_score = prediction.risk_score
        else:
            risk_score = min(100.0, abs(technical.momentum_pct) * 5 + variance * 50)

        entry = prediction.price_target
        return CompositeSignal(
            asset=asset,
            action=action,
            confidence=min(abs(score), 1.0),
            score=score,
            entry_price=entry,
            stop_loss=entry * (1 - self.band_pct),
            take_profit=entry * (1 + self.band_pct),
            risk_level=risk_level_for(risk_score),
            risk_score=risk_score,
            reasoning=REASONING_SEPARATOR.join(reasons) if reasons else "No strong signals",
            contributing_signals=ContributingSignals(
                technical=technical,
                arbitrage=arbitrage,
                prediction=prediction,
                venue_variance=variance,
            ),
        )
