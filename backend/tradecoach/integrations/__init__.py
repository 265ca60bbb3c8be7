"""
External integrations: Claude, capture folder, webhook, UI event sinks
"""
