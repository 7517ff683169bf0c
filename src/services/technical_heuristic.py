"""Technical heuristic over a single market snapshot."""

from src.models.market_data import MarketSnapshot
from src.models.trading_signal import Action, TechnicalSignal, VolumeTier

BASELINE_STRENGTH = 0.5
MOMENTUM_THRESHOLD_PCT = 5.0
MOMENTUM_BOOST = 0.2
HIGH_VOLUME_USD = 1e9
MEDIUM_VOLUME_USD = 1e8
VOLUME_BOOST = 0.1
OVERSOLD_RSI = 30.0
OVERBOUGHT_RSI = 70.0
RSI_BOOST = 0.15


def rsi_proxy(change_24h_pct: float) -> float:
    """Synthetic RSI from the 24h change, clamped to [0, 100]."""
    return min(max(50 + change_24h_pct * 2, 0.0), 100.0)


def volume_tier(volume_24h_usd: float) -> VolumeTier:
    if volume_24h_usd > HIGH_VOLUME_USD:
        return VolumeTier.HIGH
    if volume_24h_usd > MEDIUM_VOLUME_USD:
        return VolumeTier.MEDIUM
    return VolumeTier.LOW


class TechnicalHeuristic:
    """
    Derives a BUY/SELL/HOLD lean from momentum, volume and an RSI proxy.

    Every satisfied rule adds to the strength accumulator. When rules
    disagree on direction the later rule wins, so the RSI rule overrides
    momentum.
    """

    def evaluate(self, snapshot: MarketSnapshot) -> TechnicalSignal:
        change = snapshot.change_24h_pct
        direction: Action | None = None
        strength = BASELINE_STRENGTH
        reasons = []

        if change > MOMENTUM_THRESHOLD_PCT:
            direction = Action.BUY
            strength += MOMENTUM_BOOST
            reasons.append("strong upward momentum")
        elif change < -MOMENTUM_THRESHOLD_PCT:
            direction = Action.SELL
            strength += MOMENTUM_BOOST
            reasons.append("strong downward momentum")

        tier = volume_tier(snapshot.volume_24h_usd)
        if tier is VolumeTier.HIGH:
            strength += VOLUME_BOOST
            reasons.append("high trading volume")

        rsi = rsi_proxy(change)
        if rsi < OVERSOLD_RSI:
            direction = Action.BUY
            strength += RSI_BOOST
            reasons.append("oversold condition")
        elif rsi > OVERBOUGHT_RSI:
            direction = Action.SELL
            strength += RSI_BOOST
            reasons.append("overbought condition")

        if direction is None:
            # Volume alone does not move a neutral reading
            direction = Action.HOLD
            strength = BASELINE_STRENGTH
            if not reasons:
                reasons.append("no strong technical signal")

        return TechnicalSignal(
            direction=direction,
            strength=min(max(strength, 0.0), 1.0),
            momentum_pct=change,
            volume_tier=tier,
            rsi=rsi,
            reasoning=", ".join(reasons),
        )
