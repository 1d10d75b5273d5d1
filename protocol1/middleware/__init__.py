"""
Integration shim between request handling and the Protocol-1 validator.
"""

from .context_builder import ContextBuilder, GatewayRequest, GatewayUser
from .gateway import GatewayOutcome, GatewayResponse, GovernanceGateway, forbidden_response

__all__ = [
    "ContextBuilder",
    "GatewayOutcome",
    "GatewayRequest",
    "GatewayResponse",
    "GatewayUser",
    "GovernanceGateway",
    "forbidden_response",
]
