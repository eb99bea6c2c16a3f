"""Motor client management for the identity stores.

Stores never own a client: they are handed a database and only flip a
disposed flag on ``dispose()``. Whoever builds the clients (usually a
``ConnectionManager`` at application startup) closes them.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pydantic import ValidationError

from ninja_identity.config import MongoIdentityOptions, redact_url
from ninja_identity.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class _CredentialRedactFilter(logging.Filter):
    """Logging filter that scrubs credentials from driver log messages."""

    _SCRUB_RE = re.compile(
        r"://[A-Za-z0-9_.~%!$&'()*+,;=:-]+@",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._SCRUB_RE.sub("://***:***@", record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: self._SCRUB_RE.sub("://***:***@", v) if isinstance(v, str) else v
                    for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    self._SCRUB_RE.sub("://***:***@", a) if isinstance(a, str) else a for a in record.args
                )
        return True


_DRIVER_LOGGERS = ("pymongo", "motor")


def options_from_url(connection_string: str, **kwargs: Any) -> MongoIdentityOptions:
    """Validate *connection_string* into options, raising ``ConfigurationError`` on failure."""
    try:
        return MongoIdentityOptions(connection_string=connection_string, **kwargs)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid identity store configuration: {exc.errors()[0]['msg']}") from exc


class ConnectionManager:
    """Creates and caches one Motor client per connection string.

    Clients are created lazily with ``tz_aware=True`` so that datetimes such
    as ``lockout_end`` come back with ``tzinfo`` set, and with the standard
    UUID representation so that ``UUID_KEY`` identifiers can be stored.
    Both can be overridden through ``MongoIdentityOptions.options``.
    """

    def __init__(self) -> None:
        self._clients: dict[str, AsyncIOMotorClient] = {}
        self._filter_installed = False

    def get_client(self, options: MongoIdentityOptions) -> AsyncIOMotorClient:
        """Get or create the client for *options*' connection string."""
        key = options.connection_string
        if key not in self._clients:
            self._install_credential_filter()
            kwargs: dict[str, Any] = {"tz_aware": True, "uuidRepresentation": "standard", **options.options}
            logger.info("Creating MongoDB client for %s", options.redacted_connection_string)
            self._clients[key] = AsyncIOMotorClient(key, **kwargs)
        return self._clients[key]

    def get_database(self, options: MongoIdentityOptions) -> AsyncIOMotorDatabase:
        """Return the database named in *options*' connection string."""
        return self.get_client(options)[options.database_name]

    def close_all(self) -> None:
        """Close every managed client."""
        for url, client in self._clients.items():
            logger.debug("Closing MongoDB client for %s", redact_url(url))
            client.close()
        self._clients.clear()

    def _install_credential_filter(self) -> None:
        if self._filter_installed:
            return
        filt = _CredentialRedactFilter()
        for name in _DRIVER_LOGGERS:
            logging.getLogger(name).addFilter(filt)
        self._filter_installed = True
