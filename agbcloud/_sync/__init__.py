"""Namespace classes for the AgbCloud client."""

from .images import ImagesNamespace
from .oauth import OAuthNamespace

__all__ = [
    "ImagesNamespace",
    "OAuthNamespace",
]
