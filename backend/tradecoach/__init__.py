"""
TradeCoach: screenshot-driven trading coach.

Watches a screen capture folder, identifies the ticker on screen, and keeps a
running advisory dialogue about it.
"""

__version__ = "1.0.0"
