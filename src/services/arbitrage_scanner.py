"""Cross-venue arbitrage detection."""

from collections import defaultdict
from datetime import datetime
from itertools import combinations
from typing import Any

from src.models.market_data import PriceQuote, symbol_for
from src.models.trading_signal import ArbitrageOpportunity, VenueSpread
from src.utils.formatting import format_percentage, format_price

# Spread above which a venue set is flagged as having arbitrage potential
SPREAD_POTENTIAL_PCT = 0.1


def profit_pct(buy_price: float, sell_price: float) -> float:
    return (sell_price - buy_price) / buy_price * 100


class ArbitrageScanner:
    """Finds venue pairs whose price gap exceeds a minimum profit threshold."""

    def scan(
        self, quotes_by_venue: dict[str, PriceQuote], min_profit_pct: float
    ) -> list[ArbitrageOpportunity]:
        """
        Compare every pair of venue quotes for the same asset.

        Args:
            quotes_by_venue: Quotes keyed by venue
            min_profit_pct: Opportunities must beat this percentage strictly

        Returns:
            Opportunities ordered by profit_pct descending, then profit_usd
            descending, then venue pair name; empty when fewer than two
            venues quote an asset or nothing clears the threshold
        """
        by_asset: dict[str, list[PriceQuote]] = defaultdict(list)
        for quote in quotes_by_venue.values():
            by_asset[quote.asset.lower()].append(quote)

        opportunities = []
        for quotes in by_asset.values():
            for first, second in combinations(quotes, 2):
                opportunity = self._evaluate_pair(first, second)
                if opportunity is not None and opportunity.profit_pct > min_profit_pct:
                    opportunities.append(opportunity)

        opportunities.sort(key=lambda o: (-o.profit_pct, -o.profit_usd, o.venue_pair))
        return opportunities

    @staticmethod
    def _evaluate_pair(first: PriceQuote, second: PriceQuote) -> ArbitrageOpportunity | None:
        if first.price == second.price:
            return None
        buy, sell = (first, second) if first.price < second.price else (second, first)
        return ArbitrageOpportunity(
            asset=buy.asset,
            buy_venue=buy.venue,
            sell_venue=sell.venue,
            buy_price=buy.price,
            sell_price=sell.price,
            profit_pct=profit_pct(buy.price, sell.price),
            profit_usd=sell.price - buy.price,
            observed_at=max(buy.observed_at, sell.observed_at),
            synthetic=buy.synthetic or sell.synthetic,
        )

    def best_opportunity(
        self, quotes_by_venue: dict[str, PriceQuote], min_profit_pct: float
    ) -> ArbitrageOpportunity | None:
        opportunities = self.scan(quotes_by_venue, min_profit_pct)
        return opportunities[0] if opportunities else None

    @staticmethod
    def analyze_spread(quotes_by_venue: dict[str, PriceQuote]) -> VenueSpread | None:
        """Summarize the cheapest and most expensive venue; None without quotes."""
        if not quotes_by_venue:
            return None
        ordered = sorted(quotes_by_venue.values(), key=lambda q: (q.price, q.venue))
        worst, best = ordered[0], ordered[-1]
        spread = profit_pct(worst.price, best.price)
        return VenueSpread(
            asset=best.asset,
            best_venue=best.venue,
            best_price=best.price,
            worst_venue=worst.venue,
            worst_price=worst.price,
            spread_pct=spread,
            arbitrage_potential=spread > SPREAD_POTENTIAL_PCT,
        )


def format_opportunity(opportunity: ArbitrageOpportunity) -> dict[str, Any]:
    """Display-ready representation of an opportunity for the bot/API layer."""
    return {
        "asset": opportunity.asset,
        "symbol": symbol_for(opportunity.asset),
        "buy_venue": opportunity.buy_venue,
        "sell_venue": opportunity.sell_venue,
        "buy_price": opportunity.buy_price,
        "sell_price": opportunity.sell_price,
        "profit_pct": opportunity.profit_pct,
        "profit_usd": opportunity.profit_usd,
        "synthetic": opportunity.synthetic,
        "observed_at": opportunity.observed_at.isoformat()
        if isinstance(opportunity.observed_at, datetime)
        else opportunity.observed_at,
        "buy_price_formatted": format_price(opportunity.buy_price),
        "sell_price_formatted": format_price(opportunity.sell_price),
        "profit_formatted": format_percentage(opportunity.profit_pct),
        "profit_usd_formatted": format_price(opportunity.profit_usd),
    }
