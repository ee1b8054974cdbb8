"""
Security helpers module.

Components:
    - build_ssl_context(): TLS settings for the client connector
    - get_ca_bundle_path(): Custom CA bundle discovery from the environment
"""

from core.security.ssl_utils import build_ssl_context, get_ca_bundle_path

__all__ = [
    "build_ssl_context",
    "get_ca_bundle_path",
]
