"""Shared domain utilities.

This package is domain-accessible and should not depend on application code.
"""

from .lightning_backend_protocol import LightningBackendFactory, LightningBackendProtocol

__all__ = ["LightningBackendFactory", "LightningBackendProtocol"]
