"""
Context digest handed to the advisor by the dialogue loop.
"""
from typing import Optional, Sequence

from tradecoach.core.enums import Role
from tradecoach.core.models import MarketSnapshot, TickerSession, Turn


RECENT_SCREENSHOTS = 3
RECENT_TURNS = 5
SUMMARY_PREVIEW_CHARS = 200


def _price(value: Optional[float]) -> str:
    return f"${value:,.2f}" if value is not None else "N/A"


def _number(value: Optional[float]) -> str:
    return f"{value:,.0f}" if value is not None else "N/A"


def _percent(value: Optional[float]) -> str:
    return f"{value:.2f}%" if value is not None else "N/A"


def truncate(text: str, limit: int = SUMMARY_PREVIEW_CHARS) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def build_context_digest(
    session: TickerSession,
    market: Optional[MarketSnapshot],
    recent_turns: Sequence[Turn],
) -> str:
    """
    Render the session, market figures and recent activity as plain text.

    Args:
        session: Active session (read under the coach state lock)
        market: Latest market figures, or None when unavailable
        recent_turns: Most recent dialogue turns, oldest first

    Returns:
        Multi-line digest
    """
    lines = [
        f"TICKER: {session.ticker}",
        f"SESSION START: {session.start_time.isoformat()}",
        f"SCREENSHOT COUNT: {session.screenshot_count}",
    ]

    if market is not None:
        lines += [
            "",
            "MARKET DATA:",
            f"Price: {_price(market.price)}",
            f"Change: {_percent(market.change_percent)}",
            f"Volume: {_number(market.volume)}",
            f"High: {_price(market.high)}",
            f"Low: {_price(market.low)}",
            f"Open: {_price(market.open)}",
        ]
        if market.last_updated is not None:
            lines.append(f"Last Updated: {market.last_updated.isoformat()}")

    screenshots = list(session.artifacts)[-RECENT_SCREENSHOTS:][::-1]
    if screenshots:
        lines += ["", "RECENT SCREENSHOTS:"]
        for index, artifact in enumerate(screenshots, start=1):
            lines.append(f"{index}. {artifact.filename} ({artifact.modified_at.isoformat()})")

    summaries = list(session.batch_summaries)[::-1]
    if summaries:
        lines += ["", "RECENT BATCH ANALYSIS:"]
        for index, batch in enumerate(summaries, start=1):
            lines.append(
                f"{index}. [{batch.created_at:%H:%M:%S}] {batch.screenshot_count} screenshots: "
                f"{truncate(batch.summary)}"
            )

    turns = [t for t in recent_turns if t.role != Role.SYSTEM][-RECENT_TURNS:]
    if turns:
        lines += ["", "RECENT CONVERSATION:"]
        for turn in turns:
            speaker = "USER" if turn.role == Role.USER else "AI"
            lines.append(f"{speaker}: {turn.content}")

    return "\n".join(lines)
