"""
S3Client - S3/MinIO operations for listing, downloading, uploading and removing variants.
"""

import logging
from typing import Dict, Generator, List, Optional, Tuple
from urllib.parse import quote, unquote

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from .errors import RateLimitBackoff, ReferenceNotFound, StorageError
from .s3_config import S3Config


class S3Client:
    """
    Wrapper for S3/MinIO operations on the product image bucket.

    Every botocore failure is translated into the pipeline's error taxonomy:
    throttling, timeouts and 5xx become RateLimitBackoff, a rejected
    create-only put becomes StorageError, missing objects on download become
    ReferenceNotFound.
    """

    RETRYABLE_CODES = {
        'SlowDown', 'Throttling', 'ThrottlingException', 'RequestLimitExceeded',
        'TooManyRequests', 'RequestTimeout', 'RequestTimeTooSkewed',
        'ServiceUnavailable', 'InternalError', '429', '500', '502', '503', '504',
    }
    EXISTS_CODES = {'PreconditionFailed', '412', 'ConditionalRequestConflict'}
    NOT_FOUND_CODES = {'NoSuchKey', '404', 'NotFound'}

    CACHE_CONTROL = 'public, max-age=31536000'

    def __init__(self, config: S3Config, logger: Optional[logging.Logger] = None):
        """
        Initialize S3 client.

        Args:
            config: S3 configuration
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self._client = boto3.client(
            's3',
            endpoint_url=config.endpoint,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
            config=Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'},
                connect_timeout=config.connect_timeout,
                read_timeout=config.read_timeout,
                retries={'max_attempts': 2, 'mode': 'standard'},
                max_pool_connections=config.max_pool_connections,
            ),
            verify=config.verify_ssl
        )

    @property
    def client(self):
        """Return the underlying boto3 client."""
        return self._client

    @property
    def bucket(self) -> str:
        return self.config.bucket

    # --- Error translation -------------------------------------------------

    @classmethod
    def translate_error(cls, error: Exception, key: Optional[str] = None) -> StorageError:
        """Map a botocore exception onto StorageError / RateLimitBackoff."""
        target = key or 'bucket'
        if isinstance(error, ClientError):
            code = str(error.response.get('Error', {}).get('Code', ''))
            status = str(error.response.get('ResponseMetadata', {}).get('HTTPStatusCode', ''))
            message = error.response.get('Error', {}).get('Message') or str(error)
            if code in cls.RETRYABLE_CODES or status in cls.RETRYABLE_CODES:
                return RateLimitBackoff(f"Transient storage error on {target}: {code} {message}", key)
            if code in cls.EXISTS_CODES or status == '412':
                return StorageError(f"Object already exists: {target}", key)
            return StorageError(f"Storage error on {target}: {code} {message}", key)
        if isinstance(error, (ConnectTimeoutError, ReadTimeoutError, EndpointConnectionError)):
            return RateLimitBackoff(f"Storage call timed out on {target}: {error}", key)
        if isinstance(error, BotoCoreError):
            return StorageError(f"Storage client error on {target}: {error}", key)
        return StorageError(f"Unexpected storage error on {target}: {error}", key)

    # --- Listing -----------------------------------------------------------

    def list_page(
        self,
        prefix: str = '',
        max_keys: int = 1000,
        continuation_token: Optional[str] = None,
        delimiter: Optional[str] = '/'
    ) -> dict:
        """
        Fetch a single listing page.

        Returns:
            Dict with 'objects' (list of dicts with 'key', 'size',
            'last_modified'), 'folders' (common prefixes), 'next_token'
            and 'count' (entries returned on this page, folders included)
        """
        params = {
            'Bucket': self.config.bucket,
            'Prefix': prefix,
            'MaxKeys': max_keys,
        }
        if delimiter:
            params['Delimiter'] = delimiter
        if continuation_token:
            params['ContinuationToken'] = continuation_token

        try:
            response = self._client.list_objects_v2(**params)
        except (ClientError, BotoCoreError) as e:
            raise self.translate_error(e, prefix or None) from e

        objects = []
        for obj in response.get('Contents', []):
            last_modified = obj.get('LastModified')
            objects.append({
                'key': obj['Key'],
                'size': obj.get('Size', 0),
                'last_modified': last_modified.isoformat() if last_modified else None,
            })
        folders = [p['Prefix'] for p in response.get('CommonPrefixes', [])]

        return {
            'objects': objects,
            'folders': folders,
            'next_token': response.get('NextContinuationToken'),
            'count': len(objects) + len(folders),
        }

    def list_prefix(self, prefix: str, max_keys: int = 1000) -> Generator[dict, None, None]:
        """
        List every object whose key starts with prefix (no folder grouping).

        Yields:
            Dict with 'key', 'size', 'last_modified' for each object
        """
        paginator = self._client.get_paginator('list_objects_v2')
        page_iterator = paginator.paginate(
            Bucket=self.config.bucket,
            Prefix=prefix,
            PaginationConfig={'PageSize': max_keys},
        )
        try:
            for page in page_iterator:
                for obj in page.get('Contents', []):
                    last_modified = obj.get('LastModified')
                    yield {
                        'key': obj['Key'],
                        'size': obj.get('Size', 0),
                        'last_modified': last_modified.isoformat() if last_modified else None,
                    }
        except (ClientError, BotoCoreError) as e:
            raise self.translate_error(e, prefix) from e

    # --- Single objects ----------------------------------------------------

    def object_exists(self, key: str) -> bool:
        """Check if an object exists in S3."""
        try:
            self._client.head_object(Bucket=self.config.bucket, Key=key)
            return True
        except ClientError as e:
            if str(e.response['Error']['Code']) in self.NOT_FOUND_CODES:
                return False
            raise self.translate_error(e, key) from e

    def download_object(self, key: str) -> bytes:
        """Download an object from S3."""
        try:
            response = self._client.get_object(Bucket=self.config.bucket, Key=key)
            return response['Body'].read()
        except ClientError as e:
            if str(e.response['Error']['Code']) in self.NOT_FOUND_CODES:
                raise ReferenceNotFound(f"Object not found: {key}") from e
            raise self.translate_error(e, key) from e
        except BotoCoreError as e:
            raise self.translate_error(e, key) from e

    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = 'application/octet-stream',
        overwrite: bool = False
    ) -> None:
        """
        Upload an object.

        Without overwrite the put is create-only (If-None-Match: *): an
        existing object makes the call fail instead of being replaced.
        """
        params = {
            'Bucket': self.config.bucket,
            'Key': key,
            'Body': data,
            'ContentType': content_type,
            'CacheControl': self.CACHE_CONTROL,
        }
        if not overwrite:
            params['IfNoneMatch'] = '*'
        try:
            self._client.put_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise self.translate_error(e, key) from e

    def delete_object(self, key: str) -> None:
        """Remove a single object."""
        try:
            self._client.delete_object(Bucket=self.config.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self.translate_error(e, key) from e

    def delete_objects(self, keys: List[str]) -> List[Tuple[str, str]]:
        """
        Remove several objects in one request.

        Returns:
            List of (key, error message) for keys the store refused to delete.

        Raises:
            StorageError if the request as a whole failed.
        """
        if not keys:
            return []
        try:
            response = self._client.delete_objects(
                Bucket=self.config.bucket,
                Delete={'Objects': [{'Key': k} for k in keys], 'Quiet': True},
            )
        except (ClientError, BotoCoreError) as e:
            raise self.translate_error(e) from e

        return [
            (err.get('Key', ''), f"{err.get('Code', '')} {err.get('Message', '')}".strip())
            for err in response.get('Errors', [])
        ]

    def copy_object(self, key: str, dest_bucket: str, source_bucket: Optional[str] = None) -> None:
        """Server-side copy of key between buckets (same key on both sides)."""
        source = {'Bucket': source_bucket or self.config.bucket, 'Key': key}
        try:
            self._client.copy_object(
                Bucket=dest_bucket,
                Key=key,
                CopySource=source,
            )
        except (ClientError, BotoCoreError) as e:
            raise self.translate_error(e, key) from e

    # --- URLs --------------------------------------------------------------

    def _accepted_bases(self) -> List[str]:
        bases = [self.config.public_base_url]
        if self.config.endpoint:
            path_style = f"{self.config.endpoint.rstrip('/')}/{self.config.bucket}"
            if path_style not in bases:
                bases.append(path_style)
        return bases

    def public_url(self, key: str) -> str:
        """Public URL for an object key or canonical path."""
        return f"{self.config.public_base_url}/{quote(key.lstrip('/'))}"

    def key_from_url(self, value: str) -> Optional[str]:
        """
        Convert a catalog value into an object key.

        Accepts public URLs of this bucket and bare keys. Returns None for
        URLs that point anywhere else.
        """
        if not value:
            return None
        cleaned = value.strip().split('?', 1)[0].split('#', 1)[0]
        if not cleaned:
            return None
        if '://' not in cleaned:
            return unquote(cleaned.lstrip('/')) or None
        for base in self._accepted_bases():
            if cleaned.startswith(base + '/'):
                return unquote(cleaned[len(base) + 1:]) or None
        return None

    def stats(self) -> Dict[str, str]:
        """Connection details for logs and manifests."""
        return {
            'endpoint': self.config.endpoint or 'aws',
            'bucket': self.config.bucket,
            'prefix': self.config.prefix,
        }
