"""Signal pipeline: turns asset ids into composite trading signals."""

import time

from src.models.market_data import MarketSnapshot, symbol_for
from src.models.trading_signal import (
    Action,
    AssetFailure,
    MarketOverview,
    RankedOpportunity,
    RiskAssessment,
    RiskLevel,
    RiskTolerance,
    SignalBatch,
    SignalOptions,
    SignalReport,
)
from src.services.arbitrage_scanner import ArbitrageScanner
from src.services.errors import InsufficientData, UpstreamUnavailable
from src.services.prediction_chain import PredictionFallbackChain
from src.services.price_feed import PriceFeed
from src.services.signal_aggregator import SignalAggregator, risk_level_for
from src.services.technical_heuristic import TechnicalHeuristic
from src.services.venue_sampler import ProtocolPriceSampler, resolve_venue
from src.utils.event_store import ASSET_FAILED, SIGNAL_GENERATED, EventStore
from src.utils.logger import StructuredLogger
from src.utils.trace_context import trace_scope

TOP_OPPORTUNITIES = 3
RETRY_MESSAGE = "Market data is temporarily unavailable, try again shortly"

ALLOWED_RISK = {
    RiskTolerance.LOW: {RiskLevel.LOW},
    RiskTolerance.MEDIUM: {RiskLevel.LOW, RiskLevel.MEDIUM},
    RiskTolerance.HIGH: {RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH},
}


class SignalService:
    """Runs the full pipeline for one asset or a batch of assets."""

    def __init__(
        self,
        price_feed: PriceFeed | None = None,
        sampler: ProtocolPriceSampler | None = None,
        scanner: ArbitrageScanner | None = None,
        heuristic: TechnicalHeuristic | None = None,
        prediction_chain: PredictionFallbackChain | None = None,
        aggregator: SignalAggregator | None = None,
        event_store: EventStore | None = None,
    ):
        """
        Initialize the service, wiring default collaborators where none are given.

        Args:
            event_store: Optional event store shared with the default collaborators
        """
        self.event_store = event_store
        self.price_feed = price_feed or PriceFeed(event_store=event_store)
        self.sampler = sampler or ProtocolPriceSampler(
            price_feed=self.price_feed, event_store=event_store
        )
        self.scanner = scanner or ArbitrageScanner()
        self.heuristic = heuristic or TechnicalHeuristic()
        self.prediction_chain = prediction_chain or PredictionFallbackChain(event_store=event_store)
        self.aggregator = aggregator or SignalAggregator()
        self.logger = StructuredLogger("SignalService")

    def generate_signal(self, asset: str, options: SignalOptions | None = None) -> SignalReport:
        """
        Generate the composite signal for one asset.

        Raises:
            UpstreamUnavailable: if no market data can be obtained
            InsufficientData: if the market data source has nothing usable for the asset
            UnknownVenueError: if options name an unregistered venue
        """
        options = options or SignalOptions()
        asset = asset.lower()
        with trace_scope():
            snapshot = self.price_feed.get_snapshot([asset]).get(asset)
            if snapshot is None:
                raise InsufficientData(asset, "market snapshot")
            return self._evaluate(snapshot, options)

    def generate_signals(
        self, assets: list[str], options: SignalOptions | None = None
    ) -> SignalBatch:
        """
        Generate signals for several assets, isolating failures per asset.

        Args:
            assets: Asset ids
            options: Per-request options

        Returns:
            SignalBatch with a report per successful asset, a failure entry
            per failed asset, and the ranked top opportunities

        Raises:
            ValueError: if assets is empty
            UnknownVenueError: if options name an unregistered venue
        """
        if not assets:
            raise ValueError("assets must not be empty")
        options = options or SignalOptions()
        for venue in options.venues or ():
            resolve_venue(venue)

        assets = list(dict.fromkeys(asset.lower() for asset in assets))
        with trace_scope() as trace_id:
            start_time = time.time()
            self.logger.info(
                "Starting signal generation",
                context={"trace_id": trace_id, "assets": assets},
            )

            reports: list[SignalReport] = []
            failures: list[AssetFailure] = []
            try:
                snapshots = self.price_feed.get_snapshot(assets)
            except UpstreamUnavailable as e:
                for asset in assets:
                    failures.append(self._failure(trace_id, asset, e))
                snapshots = {}

            for asset in assets:
                if asset not in snapshots:
                    if not any(f.asset == asset for f in failures):
                        failures.append(
                            self._failure(trace_id, asset, InsufficientData(asset, "market snapshot"))
                        )
                    continue
                try:
                    reports.append(self._evaluate(snapshots[asset], options))
                except Exception as e:
                    failures.append(self._failure(trace_id, asset, e))

            batch = SignalBatch(
                reports=reports,
                failures=failures,
                top_opportunities=self.rank_opportunities(reports, options.risk_tolerance),
                market_overview=self.market_overview([r.snapshot for r in reports])
                if reports
                else None,
                risk_assessment=self.risk_assessment(reports) if reports else None,
                trace_id=trace_id,
            )

            self.logger.info(
                "Signal generation completed",
                context={
                    "trace_id": trace_id,
                    "signals_generated": len(reports),
                    "failures": len(failures),
                    "duration_ms": (time.time() - start_time) * 1000,
                },
            )
            return batch

    def _evaluate(self, snapshot: MarketSnapshot, options: SignalOptions) -> SignalReport:
        asset = snapshot.asset
        with trace_scope() as trace_id:
            start_time = time.time()
            quotes = self.sampler.sample_venues(
                asset, options.venues, reference_price=snapshot.price_usd
            )
            opportunities = self.scanner.scan(quotes, options.min_profit_pct)
            technical = self.heuristic.evaluate(snapshot)
            prediction = self.prediction_chain.predict(asset, snapshot, options.timeout_ms)
            composite = self.aggregator.aggregate(
                asset,
                technical,
                opportunities[0] if opportunities else None,
                prediction,
                quotes,
            )
            synthetic_venues = sorted(venue for venue, quote in quotes.items() if quote.synthetic)

            duration_ms = (time.time() - start_time) * 1000
            self.logger.info(
                f"Signal generated for {asset}",
                context={
                    "trace_id": trace_id,
                    "symbol": asset,
                    "action": composite.action.value,
                    "confidence": composite.confidence,
                    "score": composite.score,
                    "prediction_source": prediction.source.value,
                    "opportunities": len(opportunities),
                    "synthetic_venues": synthetic_venues,
                },
            )
            if self.event_store:
                self.event_store.add_event(
                    trace_id=trace_id,
                    event_type=SIGNAL_GENERATED,
                    component="SignalService",
                    message=f"Signal generated for {asset}",
                    context={
                        "symbol": asset,
                        "action": composite.action.value,
                        "confidence": composite.confidence,
                        "prediction_source": prediction.source.value,
                    },
                    duration_ms=duration_ms,
                )

            return SignalReport(
                snapshot=snapshot,
                composite=composite,
                technical=technical,
                opportunities=opportunities,
                venue_spread=self.scanner.analyze_spread(quotes),
                synthetic_venues=synthetic_venues,
            )

    def _failure(self, trace_id: str, asset: str, error: Exception) -> AssetFailure:
        if isinstance(error, UpstreamUnavailable):
            failure = AssetFailure(
                asset=asset, error="upstream_unavailable", message=RETRY_MESSAGE, retryable=True
            )
        elif isinstance(error, InsufficientData):
            failure = AssetFailure(
                asset=asset, error="insufficient_data", message=str(error), retryable=False
            )
        else:
            failure = AssetFailure(
                asset=asset, error="pipeline_error", message=str(error), retryable=False
            )

        self.logger.error(
            f"Signal generation failed for {asset}",
            context={"trace_id": trace_id, "symbol": asset, "error": failure.error},
            exception=error,
        )
        if self.event_store:
            self.event_store.add_event(
                trace_id=trace_id,
                event_type=ASSET_FAILED,
                component="SignalService",
                message=f"Signal generation failed for {asset}",
                context={"symbol": asset, "error": failure.error, "retryable": failure.retryable},
            )
        return failure

    @staticmethod
    def rank_opportunities(
        reports: list[SignalReport],
        risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM,
    ) -> list[RankedOpportunity]:
        """Top actionable signals within the risk tolerance, most confident first."""
        allowed = ALLOWED_RISK[RiskTolerance(risk_tolerance)]
        actionable = [
            r
            for r in reports
            if r.composite.action is not Action.HOLD and r.composite.risk_level in allowed
        ]
        actionable.sort(key=lambda r: (-r.composite.confidence, r.snapshot.asset))

        ranked = []
        for index, report in enumerate(actionable[:TOP_OPPORTUNITIES], start=1):
            composite = report.composite
            price = report.snapshot.price_usd
            if composite.action is Action.BUY:
                potential = (composite.take_profit - price) / price * 100
            else:
                potential = (price - composite.entry_price) / price * 100
            ranked.append(
                RankedOpportunity(
                    rank=index,
                    asset=composite.asset,
                    symbol=symbol_for(composite.asset),
                    action=composite.action,
                    confidence=composite.confidence,
                    potential_return_pct=potential,
                    risk_level=composite.risk_level,
                )
            )
        return ranked

    @staticmethod
    def market_overview(snapshots: list[MarketSnapshot]) -> MarketOverview:
        bullish = sum(1 for s in snapshots if s.change_24h_pct > 0)
        bearish = len(snapshots) - bullish
        if bullish > bearish:
            sentiment = "BULLISH"
        elif bearish > bullish:
            sentiment = "BEARISH"
        else:
            sentiment = "NEUTRAL"
        return MarketOverview(
            market_sentiment=sentiment,
            bullish_assets=bullish,
            bearish_assets=bearish,
            total_volume_24h_usd=sum(s.volume_24h_usd for s in snapshots),
            fear_greed_index=min(max(50 + (bullish - bearish) * 10, 0), 100),
        )

    @staticmethod
    def risk_assessment(reports: list[SignalReport]) -> RiskAssessment:
        average = sum(r.composite.risk_score for r in reports) / len(reports)
        level = risk_level_for(average)
        if level is RiskLevel.HIGH:
            recommendation = "Reduce position sizes"
        elif level is RiskLevel.MEDIUM:
            recommendation = "Maintain current strategy"
        else:
            recommendation = "Consider increasing exposure"
        return RiskAssessment(overall_risk=average, risk_level=level, recommendation=recommendation)
