# storage/catalog_storage.py
import json
import logging
import os
from typing import Dict, Iterable, List, Optional

import aiofiles
import aiofiles.os

from pos_terminal.models.errors import NetworkFailure, RemoteRejected, StoreIOError
from pos_terminal.models.models import Product

logger = logging.getLogger(__name__)


class ProductCatalog:
    """Local copy of the product listing. This core only reads it to price items."""

    def __init__(self, path: str):
        self._path = path
        self._products: Dict[int, Product] = {}

    async def load(self) -> None:
        try:
            async with aiofiles.open(self._path, 'r', encoding='utf-8') as f:
                content = await f.read()
        except FileNotFoundError:
            logger.warning(f"File {self._path} not found, catalog is empty")
            self._products = {}
            return
        except OSError as e:
            raise StoreIOError(f"cannot read catalog: {e}") from e

        try:
            data = json.loads(content) if content else []
            self._products = {p.pk_key: p for p in (Product.from_dict(item) for item in data)}
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"JSON decode error in {self._path}: {e}")
            raise StoreIOError(f"cannot decode catalog: {e}") from e
        logger.info(f"Catalog loaded: {len(self._products)} products")

    def get(self, pk_key: int) -> Optional[Product]:
        return self._products.get(pk_key)

    def all(self) -> List[Product]:
        return [self._products[pk] for pk in sorted(self._products)]

    def __len__(self) -> int:
        return len(self._products)

    async def replace(self, products: Iterable[Product]) -> None:
        products = {p.pk_key: p for p in products}
        try:
            directory = os.path.dirname(self._path)
            if directory:
                await aiofiles.os.makedirs(directory, exist_ok=True)
            async with aiofiles.open(self._path, 'w', encoding='utf-8') as f:
                await f.write(json.dumps([products[pk].to_dict() for pk in sorted(products)],
                                         ensure_ascii=False, indent=2))
        except OSError as e:
            logger.error(f"Error saving catalog to {self._path}: {e}")
            raise StoreIOError(f"cannot write catalog: {e}") from e
        self._products = products
        logger.info(f"Catalog saved: {len(products)} products")

    async def seed_from_remote(self, client) -> bool:
        """Fetches the product listing only when the local catalog is empty."""
        if self._products:
            logger.info("Products already cached locally, skipping remote fetch")
            return False
        try:
            products = await client.fetch_products()
        except (NetworkFailure, RemoteRejected) as e:
            logger.warning(f"Could not fetch products: {e}")
            return False
        await self.replace(products)
        return True
