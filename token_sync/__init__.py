"""
Token Sync - Live token state synchronization engine.

Architecture:
- datafeed/: Feed sources (simulated ticks, WebSocket) and the canonical token store
- engine/: Derived view computation (filter + sort) and the orchestrator
- utils/: Logging setup
"""

__version__ = "0.1.0"
