"""AgbCloud CLI - command line client and SDK for AgbCloud custom images."""

from importlib.metadata import PackageNotFoundError, version

from .client import AgbCloudClient
from .exceptions import (
    AgbCloudError,
    APIError,
    AuthenticationError,
    ImageNotFoundError,
    NoPortAvailableError,
    RequestRejectedError,
    TransientError,
)

__all__ = [
    "AgbCloudClient",
    "AgbCloudError",
    "APIError",
    "AuthenticationError",
    "ImageNotFoundError",
    "NoPortAvailableError",
    "RequestRejectedError",
    "TransientError",
]

try:
    __version__ = version("agbcloud-cli")
except PackageNotFoundError:
    __version__ = "0.1.0"
