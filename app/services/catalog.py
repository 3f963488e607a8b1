"""Read-only product catalog lookup.

Products live in three categories in the external catalog service. Call
sites only see ProductCatalog.resolve(); the category fan-out stays in
CategoryFanoutCatalog.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)

CATEGORIES = ("chemical_drugs", "medical_supplies", "natural_products")
UNKNOWN_CATEGORY = "unknown"


@dataclass
class ProductInfo:
    """What the workflow needs to show about a product."""

    product_id: str
    name: str
    category: str
    manufacturer: Optional[str] = None
    code: Optional[str] = None  # GTIN / IRC where the catalog has one


class ProductCatalog(ABC):
    """Resolve opaque product IDs to catalog records."""

    @abstractmethod
    def resolve(self, product_id: str) -> Optional[ProductInfo]:
        """Return the product or None when no category knows it."""

    def resolve_many(self, product_ids: Iterable[str]) -> dict[str, ProductInfo]:
        found = {}
        for product_id in set(product_ids):
            info = self.resolve(product_id)
            if info is not None:
                found[product_id] = info
        return found


class CategorySource(ABC):
    """One catalog category."""

    category: str

    @abstractmethod
    def get(self, product_id: str) -> Optional[ProductInfo]:
        ...


class StaticCategorySource(CategorySource):
    """In-memory category, for tests and fixtures."""

    def __init__(self, category: str, products: dict[str, dict]):
        self.category = category
        self.products = products

    def get(self, product_id: str) -> Optional[ProductInfo]:
        record = self.products.get(product_id)
        if record is None:
            return None
        return ProductInfo(
            product_id=product_id,
            name=record["name"],
            category=self.category,
            manufacturer=record.get("manufacturer"),
            code=record.get("code"),
        )


class HttpCategorySource(CategorySource):
    """Category served by the catalog service at {base_url}/{category}/{id}."""

    def __init__(self, category: str, base_url: str, timeout: float = 5.0,
                 client: Optional[httpx.Client] = None):
        self.category = category
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def get(self, product_id: str) -> Optional[ProductInfo]:
        url = f"{self.base_url}/{self.category}/{product_id}"
        try:
            response = self._client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"Catalog request failed for {url}: {e}")
            raise

        if response.status_code == 404:
            return None
        response.raise_for_status()

        data = response.json()
        return ProductInfo(
            product_id=product_id,
            name=data.get("name") or data.get("drug_name") or product_id,
            category=self.category,
            manufacturer=data.get("manufacturer") or data.get("company_name"),
            code=data.get("gtin") or data.get("irc"),
        )


class CategoryFanoutCatalog(ProductCatalog):
    """Ask each category in order; the first hit wins."""

    def __init__(self, sources: list[CategorySource]):
        self.sources = sources

    def resolve(self, product_id: str) -> Optional[ProductInfo]:
        for source in self.sources:
            info = source.get(product_id)
            if info is not None:
                return info
        return None


@lru_cache
def get_product_catalog() -> Optional[ProductCatalog]:
    """HTTP-backed catalog when CATALOG_API_URL is set, otherwise None."""
    settings = get_settings()
    if not settings.CATALOG_API_URL:
        return None

    client = httpx.Client(timeout=settings.CATALOG_TIMEOUT_SECONDS)
    return CategoryFanoutCatalog([
        HttpCategorySource(category, settings.CATALOG_API_URL, client=client)
        for category in CATEGORIES
    ])
