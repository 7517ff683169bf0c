"""Display formatting for prices and percentage changes."""


def format_price(price: float) -> str:
    """Format a USD price with precision that suits its magnitude."""
    if price >= 1:
        return f"${price:,.2f}"
    if price >= 0.01:
        return f"${price:.4f}"
    return f"${price:.8f}"


def format_percentage(change: float) -> str:
    """Format a percentage change with an explicit sign."""
    sign = "+" if change >= 0 else ""
    return f"{sign}{change:.2f}%"


def price_trend_emoji(change: float) -> str:
    """Emoji used by the bot for a 24h change."""
    if change > 5:
        return "🚀"
    if change > 0:
        return "📈"
    if change < -5:
        return "📉"
    if change < 0:
        return "🔻"
    return "➡️"
