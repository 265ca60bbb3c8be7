#!/usr/bin/env python
"""
Start the TradeCoach CLI
"""
from tradecoach.cli.main import app

if __name__ == "__main__":
    app()
