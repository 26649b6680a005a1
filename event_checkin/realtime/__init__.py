"""Realtime infrastructure (broadcaster, Socket.IO, event streams).

This package holds the cross-domain realtime primitives so pre-registration
imports, check-ins and quick-adds share one fan-out path.
"""
