"""
swift-obst - Python SDK for OpenStack Swift object storage and identity limits
"""

from . import accounts, limits, objects
from .client import ServiceClient, ServiceConfig
from .exceptions import (
    ConditionalRequestFailed,
    DecodingError,
    ObjectsError,
    PrerequisiteMissing,
    TransportError,
)
from .headers import UNSET
from .limits import LimitsClient
from .objects import ObjectsClient
from .tempurl import TempURLOpts

__version__ = "0.1.0"
__all__ = [
    "ServiceClient",
    "ObjectsClient",
    "LimitsClient",
    "ServiceConfig",
    "TempURLOpts",
    "UNSET",
    "ObjectsError",
    "TransportError",
    "ConditionalRequestFailed",
    "PrerequisiteMissing",
    "DecodingError",
    "accounts",
    "limits",
    "objects",
]
