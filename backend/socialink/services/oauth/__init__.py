"""OAuth connection subsystem

Re-exports the public surface so callers can simply
``from socialink.services.oauth import create_orchestrator``.
"""
from socialink.services.oauth.graph_errors import format_graph_error, parse_graph_error, read_graph_error
from socialink.services.oauth.instagram_resolver import BusinessAccountResolver
from socialink.services.oauth.orchestrator import OAuthOrchestrator, create_orchestrator
from socialink.services.oauth.scopes import (
    REQUIRED_INSTAGRAM_SCOPES, format_missing_permissions, missing_permissions, normalize_scopes
)
from socialink.services.oauth.state import OAuthStateStore, decode_state, encode_state, generate_pkce_pair

__all__ = [
    "BusinessAccountResolver",
    "OAuthOrchestrator",
    "OAuthStateStore",
    "REQUIRED_INSTAGRAM_SCOPES",
    "create_orchestrator",
    "decode_state",
    "encode_state",
    "format_graph_error",
    "format_missing_permissions",
    "generate_pkce_pair",
    "missing_permissions",
    "normalize_scopes",
    "parse_graph_error",
    "read_graph_error",
]
