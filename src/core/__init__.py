"""
Core domain logic.

Framework-agnostic: no HTTP, no boto3. Depends only on the standard
library and on the StorageTransport protocol.
"""
