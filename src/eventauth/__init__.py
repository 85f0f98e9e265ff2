"""eventauth — per-event user sessions.

Issues short-lived access tokens and rotating refresh tokens for users
of an event, with at most one live session per (event, user).
"""

__version__ = "0.1.0"
