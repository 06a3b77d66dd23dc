from .forwarder import Forwarder, UpstreamUnreachable, is_static_asset, strip_prefix
from .models import ForwardContext, IncomingRequest

__all__ = [
    "Forwarder",
    "UpstreamUnreachable",
    "is_static_asset",
    "strip_prefix",
    "ForwardContext",
    "IncomingRequest",
]
