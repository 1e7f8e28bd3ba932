"""
Bucket URL Service - URL resolution and signing for S3-compatible storage.

This package contains the complete application:
- core: Framework-agnostic bucket configuration, URL and signing logic
- infrastructure: Storage transports (boto3, in-memory mock)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
