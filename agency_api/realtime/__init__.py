"""Realtime infrastructure: the socket hub shared by project chat and user notifications.

Publishers (route handlers, notification fan-out) only call the hub's
broadcast methods; connection handling lives in `hub` and `registry`.
"""
from .hub import RealtimeHub, current_hub  # noqa: F401
