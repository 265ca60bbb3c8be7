"""
Managers own state transitions and the command surface.
"""
