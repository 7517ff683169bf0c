"""Trading signal models produced by the signal pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.models.market_data import MarketSnapshot


class Action(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class VolumeTier(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class PredictionSource(str, Enum):
    """Which tier of the prediction fallback chain answered."""

    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"
    HEURISTIC = "HEURISTIC"


class RiskTolerance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class SignalOptions:
    """Per-request options accepted by the pipeline."""

    min_profit_pct: float = 0.1
    risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM
    venues: tuple[str, ...] | None = None  # None means the built-in venue list
    timeout_ms: int | None = None  # None means the per-tier defaults

    def __post_init__(self):
        if self.min_profit_pct < 0:
            raise ValueError("min_profit_pct cannot be negative")
        if self.timeout_ms is not None and self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.venues is not None and not self.venues:
            raise ValueError("venues must list at least one venue when given")
        # Accept plain strings and lists from callers
        object.__setattr__(self, "risk_tolerance", RiskTolerance(self.risk_tolerance))
        if self.venues is not None:
            object.__setattr__(self, "venues", tuple(v.lower() for v in self.venues))


@dataclass(frozen=True)
class TechnicalSignal:
    """Directional signal derived from a single market snapshot."""

    direction: Action
    strength: float  # 0-1
    momentum_pct: float
    volume_tier: VolumeTier
    rsi: float
    reasoning: str


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """A buy-low/sell-high pair of venues for one asset."""

    asset: str
    buy_venue: str
    sell_venue: str
    buy_price: float
    sell_price: float
    profit_pct: float
    profit_usd: float
    observed_at: datetime
    synthetic: bool = False

    @property
    def venue_pair(self) -> str:
        return f"{self.buy_venue}->{self.sell_venue}"


@dataclass(frozen=True)
class VenueSpread:
    """Best and worst venue prices for an asset."""

    asset: str
    best_venue: str
    best_price: float
    worst_venue: str
    worst_price: float
    spread_pct: float
    arbitrage_potential: bool


@dataclass(frozen=True)
class PredictionResult:
    """Price prediction returned by one tier of the fallback chain."""

    action: Action
    confidence: float  # 0-1
    price_target: float
    stop_loss: float
    source: PredictionSource
    take_profit: float | None = None
    risk_score: float | None = None  # 0-100, when the predictor supplies one
    reasoning: str = ""


@dataclass(frozen=True)
class ContributingSignals:
    """Inputs a composite signal was built from."""

    technical: TechnicalSignal
    prediction: PredictionResult
    venue_variance: float
    arbitrage: ArbitrageOpportunity | None = None


@dataclass(frozen=True)
class CompositeSignal:
    """Final recommendation combining every signal source for an asset."""

    asset: str
    action: Action
    confidence: float  # 0-1
    score: float  # -1 to 1
    entry_price: float
    stop_loss: float
    take_profit: float
    risk_level: RiskLevel
    risk_score: float
    reasoning: str
    contributing_signals: ContributingSignals
    generated_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SignalReport:
    """Composite signal plus the raw inputs the bot/API layer displays."""

    snapshot: MarketSnapshot
    composite: CompositeSignal
    technical: TechnicalSignal
    opportunities: list[ArbitrageOpportunity] = field(default_factory=list)
    venue_spread: VenueSpread | None = None
    synthetic_venues: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AssetFailure:
    """A single asset that could not be evaluated in a batch request."""

    asset: str
    error: str
    message: str
    retryable: bool


@dataclass(frozen=True)
class RankedOpportunity:
    rank: int
    asset: str
    symbol: str
    action: Action
    confidence: float
    potential_return_pct: float
    risk_level: RiskLevel


@dataclass(frozen=True)
class MarketOverview:
    market_sentiment: str  # BULLISH, BEARISH or NEUTRAL
    bullish_assets: int
    bearish_assets: int
    total_volume_24h_usd: float
    fear_greed_index: int


@dataclass(frozen=True)
class RiskAssessment:
    overall_risk: float
    risk_level: RiskLevel
    recommendation: str


@dataclass(frozen=True)
class SignalBatch:
    """Result of evaluating several assets in one request."""

    reports: list[SignalReport]
    failures: list[AssetFailure]
    top_opportunities: list[RankedOpportunity]
    market_overview: MarketOverview | None
    risk_assessment: RiskAssessment | None
    trace_id: str | None = None
    generated_at: datetime = field(default_factory=datetime.now)
