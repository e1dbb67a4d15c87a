"""
Catalog access - typed, read-mostly view of the image fields in the relational catalog.

Only three fields can hold image references: products.foto_principal,
products.fotos (JSON array of strings) and banners.imagem_url.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import mysql.connector
from mysql.connector import pooling
from retrying import retry

OWNER_PRODUCT = 'product'
OWNER_BANNER = 'banner'

FIELD_FOTO_PRINCIPAL = 'foto_principal'
FIELD_FOTOS = 'fotos'
FIELD_IMAGEM_URL = 'imagem_url'


@dataclass(frozen=True)
class CatalogReference:
    """
    One image reference found in the catalog.

    Attributes:
        owner_kind: 'product' or 'banner'
        owner_id: Primary key of the owning row
        field: Column holding the value
        raw_value: Value exactly as stored
    """
    owner_kind: str
    owner_id: int
    field: str
    raw_value: str


@dataclass(frozen=True)
class ProductImages:
    """Image columns of one products row."""
    id: int
    foto_principal: Optional[str] = None
    fotos: Tuple[str, ...] = ()

    def references(self) -> Iterator[CatalogReference]:
        if self.foto_principal:
            yield CatalogReference(OWNER_PRODUCT, self.id, FIELD_FOTO_PRINCIPAL, self.foto_principal)
        for foto in self.fotos:
            if foto:
                yield CatalogReference(OWNER_PRODUCT, self.id, FIELD_FOTOS, foto)


@dataclass(frozen=True)
class BannerImage:
    """Image column of one banners row."""
    id: int
    imagem_url: Optional[str] = None

    def references(self) -> Iterator[CatalogReference]:
        if self.imagem_url:
            yield CatalogReference(OWNER_BANNER, self.id, FIELD_IMAGEM_URL, self.imagem_url)


@dataclass
class CatalogConfig:
    """MySQL connection settings for the catalog."""
    host: str = 'localhost'
    port: int = 3306
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    pool_size: int = 4

    @classmethod
    def from_env(cls) -> 'CatalogConfig':
        """Create configuration from SQL_* environment variables."""
        return cls(
            host=os.getenv('SQL_HOST', 'localhost'),
            port=int(os.getenv('SQL_PORT', '3306')),
            user=os.getenv('SQL_USER'),
            password=os.getenv('SQL_PASSWORD'),
            database=os.getenv('SQL_DATABASE'),
            pool_size=int(os.getenv('SQL_POOL_SIZE', '4')),
        )

    def validate(self) -> List[str]:
        errors = []
        if not self.user:
            errors.append("SQL_USER is required")
        if not self.database:
            errors.append("SQL_DATABASE is required")
        if self.pool_size < 1:
            errors.append("SQL_POOL_SIZE must be at least 1")
        return errors


def decode_fotos(value) -> Tuple[str, ...]:
    """
    Decode the fotos column (JSON array of strings).

    Raises ValueError on anything else so a schema change is noticed
    instead of silently yielding no references.
    """
    if value is None or value == '':
        return ()
    if isinstance(value, (bytes, bytearray)):
        value = value.decode('utf-8')
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"products.fotos is not valid JSON: {e}") from e
    if not isinstance(value, list) or not all(isinstance(v, str) or v is None for v in value):
        raise ValueError(f"products.fotos must be a JSON array of strings, got {type(value).__name__}")
    return tuple(v for v in value if v)


class CatalogDb:
    """
    Pooled mysql-connector access to the catalog's image columns.
    """

    def __init__(self, config: CatalogConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.connection_pool = None

    def initialize_pool(self):
        """Initialize the connection pool lazily if it hasn't been created yet."""
        if not self.connection_pool:
            self.logger.debug("Initializing catalog connection pool...")
            try:
                self.connection_pool = pooling.MySQLConnectionPool(
                    pool_name="catalog_pool",
                    pool_size=self.config.pool_size,
                    user=self.config.user,
                    password=self.config.password,
                    host=self.config.host,
                    port=self.config.port,
                    database=self.config.database,
                )
            except mysql.connector.Error as err:
                self.logger.error(f"Failed to initialize catalog connection pool: {err}")
                raise

    @retry(retry_on_exception=lambda e: isinstance(e, mysql.connector.Error),
           stop_max_attempt_number=3, wait_exponential_multiplier=1000)
    def get_cursor(self):
        """Get a connection from the pool and create a cursor."""
        self.initialize_pool()
        connection = self.connection_pool.get_connection()
        return connection.cursor(buffered=True), connection

    def close_connection(self, connection):
        """Return a connection to the pool."""
        if connection:
            try:
                connection.close()
            except mysql.connector.Error as e:
                self.logger.warning(f"Error closing catalog connection: {e}")

    def _query(self, sql: str, params: tuple = ()) -> list:
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            cursor.execute(sql, params)
            return cursor.fetchall()
        except mysql.connector.Error as e:
            self.logger.error(f"Catalog query failed: {e}")
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def _execute(self, sql: str, params: tuple = ()) -> int:
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            self.logger.debug(f"SQL: {sql} {params}")
            cursor.execute(sql, params)
            connection.commit()
            return cursor.rowcount
        except mysql.connector.Error as e:
            self.logger.error(f"Catalog update failed: {e}")
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def fetch_products(self) -> List[ProductImages]:
        """All products, inactive and soft-deleted rows included."""
        rows = self._query("SELECT id, foto_principal, fotos FROM products ORDER BY id")
        return [
            ProductImages(id=row_id, foto_principal=foto_principal, fotos=decode_fotos(fotos))
            for (row_id, foto_principal, fotos) in rows
        ]

    def fetch_banners(self) -> List[BannerImage]:
        """All banners, inactive rows included."""
        rows = self._query("SELECT id, imagem_url FROM banners ORDER BY id")
        return [BannerImage(id=row_id, imagem_url=imagem_url) for (row_id, imagem_url) in rows]

    def iter_references(self) -> Iterator[CatalogReference]:
        """Every image reference held by any catalog row."""
        for product in self.fetch_products():
            yield from product.references()
        for banner in self.fetch_banners():
            yield from banner.references()

    def replace_reference(self, reference: CatalogReference, new_value: str) -> bool:
        """
        Rewrite one stored reference. Only the matching value is touched.

        Returns:
            True if a row was updated
        """
        if reference.field == FIELD_FOTO_PRINCIPAL:
            updated = self._execute(
                "UPDATE products SET foto_principal = %s WHERE id = %s AND foto_principal = %s",
                (new_value, reference.owner_id, reference.raw_value)
            )
        elif reference.field == FIELD_IMAGEM_URL:
            updated = self._execute(
                "UPDATE banners SET imagem_url = %s WHERE id = %s AND imagem_url = %s",
                (new_value, reference.owner_id, reference.raw_value)
            )
        elif reference.field == FIELD_FOTOS:
            rows = self._query("SELECT fotos FROM products WHERE id = %s", (reference.owner_id,))
            if not rows:
                return False
            fotos = [new_value if f == reference.raw_value else f for f in decode_fotos(rows[0][0])]
            updated = self._execute(
                "UPDATE products SET fotos = %s WHERE id = %s",
                (json.dumps(fotos), reference.owner_id)
            )
        else:
            raise ValueError(f"Unknown image field: {reference.field}")

        return updated > 0
