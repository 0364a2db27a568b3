"""
Clientele configuration.

Usage in settings.py:
    CLIENTELE = {
        "MAX_ADDRESSES": 3,
        "LEDGER_BACKEND": "clientele.adapters.zoho_books.ZohoBooksBackend",
        "ZOHO_CLIENT_ID": "...",
        "ZOHO_CLIENT_SECRET": "...",
        "ZOHO_ORG_ID": "...",
        "ZOHO_REDIRECT_URI": "https://example.com/zoho/callback",
        "CRON_SECRET": "...",
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class ClienteleSettings:
    """Clientele configuration settings."""

    # Address registry
    MAX_ADDRESSES: int = 3

    # Ledger backend (dotted path to a LedgerBackend implementation)
    LEDGER_BACKEND: str = "clientele.adapters.zoho_books.ZohoBooksBackend"
    LEDGER_TIMEOUT: float = 30.0
    LEDGER_CACHE_TTL: int = 600

    # Zoho Books credentials
    ZOHO_CLIENT_ID: str = ""
    ZOHO_CLIENT_SECRET: str = ""
    ZOHO_ORG_ID: str = ""
    ZOHO_REDIRECT_URI: str = ""
    ZOHO_ACCOUNTS_URL: str = "https://accounts.zoho.com/oauth/v2"
    ZOHO_API_URL: str = "https://www.zohoapis.com/books/v3"

    # Sync queue
    SYNC_MAX_ATTEMPTS: int = 3
    SYNC_RETRY_DELAYS: tuple = (5, 15, 60)  # minutes, indexed by attempts - 1
    SYNC_WORKERS: int = 4
    SYNC_STALE_AFTER: int = 600  # seconds before a "syncing" claim can be retaken

    # Cron endpoints (empty = cron views disabled)
    CRON_SECRET: str = ""

    # Notifications
    APP_URL: str = "http://localhost:8000"
    EMAIL_DAILY_LIMIT: int = 100
    EMAIL_FROM: str = ""
    CONFIRMATION_TOKEN_DAYS: int = 30


def get_clientele_settings() -> ClienteleSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "CLIENTELE", {})
    return ClienteleSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_clientele_settings(), name)


clientele_settings = _LazySettings()
