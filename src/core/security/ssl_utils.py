"""SSL/TLS utilities for team servers with private or self-signed certificates."""

import logging
import os
import ssl

logger = logging.getLogger(__name__)


def get_ca_bundle_path() -> str | None:
    """Return a custom CA bundle path from the environment, if one is set."""
    return (
        os.getenv("SSL_CERT_FILE")
        or os.getenv("REQUESTS_CA_BUNDLE")
        or os.getenv("CURL_CA_BUNDLE")
        or None
    )


def build_ssl_context(
    verify_ssl: bool = True,
    ca_bundle: str | None = None,
) -> ssl.SSLContext | bool:
    """
    Build the ``ssl`` argument for an aiohttp connector.

    Returns ``False`` when verification is disabled (aiohttp's way of skipping
    certificate checks), otherwise an SSLContext trusting ``ca_bundle`` or the
    bundle named by SSL_CERT_FILE / REQUESTS_CA_BUNDLE / CURL_CA_BUNDLE, falling
    back to the system store.
    """
    if not verify_ssl:
        logger.warning(
            "TLS certificate verification disabled",
            extra={"verify_ssl": False},
        )
        return False

    cafile = ca_bundle or get_ca_bundle_path()
    return ssl.create_default_context(cafile=cafile)
