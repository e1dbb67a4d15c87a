"""
S3Config - Blob store connection settings.
"""

import os
from dataclasses import dataclass
from typing import List, Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'y', 't')


@dataclass
class S3Config:
    """
    S3/MinIO configuration for the product image bucket.

    Attributes:
        endpoint: S3 endpoint URL (None for AWS default)
        bucket: Bucket name
        prefix: Folder segment that holds product images (e.g. 'produtos')
        access_key: Access key id
        secret_key: Secret access key
        region: Region name
        public_url: Base URL under which objects are publicly served;
            defaults to '{endpoint}/{bucket}'
        verify_ssl: Verify TLS certificates
        connect_timeout: Seconds to wait for a connection
        read_timeout: Seconds to wait for a response
        max_pool_connections: Size of botocore's HTTP connection pool
    """
    endpoint: Optional[str] = None
    bucket: str = 'produtos'
    prefix: str = 'produtos'
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = 'us-east-1'
    public_url: Optional[str] = None
    verify_ssl: bool = True
    connect_timeout: float = 5.0
    read_timeout: float = 30.0
    max_pool_connections: int = 20

    @classmethod
    def from_env(cls) -> 'S3Config':
        """Create configuration from S3_* environment variables."""
        return cls(
            endpoint=os.getenv('S3_ENDPOINT'),
            bucket=os.getenv('S3_BUCKET', 'produtos'),
            prefix=os.getenv('S3_PREFIX', 'produtos'),
            access_key=os.getenv('S3_ACCESS_KEY'),
            secret_key=os.getenv('S3_SECRET_KEY'),
            region=os.getenv('S3_REGION', 'us-east-1'),
            public_url=os.getenv('S3_PUBLIC_URL'),
            verify_ssl=_env_bool('S3_VERIFY_SSL', True),
            connect_timeout=float(os.getenv('S3_CONNECT_TIMEOUT', '5')),
            read_timeout=float(os.getenv('S3_READ_TIMEOUT', '30')),
            max_pool_connections=int(os.getenv('S3_MAX_POOL_CONNECTIONS', '20')),
        )

    @property
    def public_base_url(self) -> str:
        """Base URL that prefixes every public object URL (no trailing slash)."""
        if self.public_url:
            return self.public_url.rstrip('/')
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com"

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty if valid)."""
        errors = []
        if not self.bucket:
            errors.append("S3_BUCKET is required")
        if not self.access_key:
            errors.append("S3_ACCESS_KEY is required")
        if not self.secret_key:
            errors.append("S3_SECRET_KEY is required")
        if self.prefix.startswith('/') or self.prefix.endswith('/'):
            errors.append("S3_PREFIX must not start or end with '/'")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            errors.append("S3 timeouts must be positive")
        return errors
