"""
Object storage transports (S3 and S3-compatible services).

Real transport uses boto3; mock mode keeps objects in memory for local
development without credentials.
"""

from .client import (
    BotoStorageTransport,
    MockStorageTransport,
    TransportTimeouts,
    create_storage_transport,
)

__all__ = [
    "BotoStorageTransport",
    "MockStorageTransport",
    "TransportTimeouts",
    "create_storage_transport",
]
