"""Platform adapters for inbound webhook envelopes."""

from app.adapters.base import BasePlatformAdapter
from app.adapters.umbler import UmblerAdapter

__all__ = ["BasePlatformAdapter", "UmblerAdapter"]
