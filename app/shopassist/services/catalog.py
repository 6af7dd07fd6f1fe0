"""
Purpose: Catalog and seller endpoints, consumed as opaque collaborators.

The client keeps read-only Product copies keyed by id. Every list/detail
query refreshes the copies it returns; seller update/delete drop the copy
for that id so the next read goes back to the server.
Seller-only operations check the stored user before any network call.
"""

from __future__ import annotations
from typing import Any, Optional

from ..context import ClientContext
from ..errors import ClientInputError
from ..models import Category, ImageAnalysis, Product, User, VoiceRecording
from ..utils.log import get_logger
from .assistant_api import products_from
from .transport import TransportClient

logger = get_logger(__name__)

PRODUCTS_PATH = "/api/v1/products"
FEATURED_PATH = "/api/v1/products/featured"
CATEGORIES_PATH = "/api/v1/products/categories"
SELLER_PRODUCTS_PATH = "/api/v1/seller/products"
ANALYZE_IMAGE_PATH = "/api/v1/seller/analyze-image"
VOICE_PRICE_PATH = "/api/v1/seller/voice-price-update"
ANALYTICS_PATH = "/api/v1/seller/analytics"


class CatalogClient:
    def __init__(self, transport: TransportClient, context: Optional[ClientContext] = None) -> None:
        self.transport = transport
        self.context = context or transport.context
        self._products: dict[int, Product] = {}

    # ---------- cache ----------
    def cached(self, product_id: int) -> Optional[Product]:
        return self._products.get(product_id)

    def _remember(self, products: list[Product]) -> list[Product]:
        for p in products:
            self._products[p.id] = p
        return products

    def invalidate(self, product_id: Optional[int] = None) -> None:
        if product_id is None:
            self._products.clear()
        else:
            self._products.pop(product_id, None)

    # ---------- buyer reads ----------
    async def list_products(
        self,
        *,
        search: Optional[str] = None,
        category: Optional[int] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        brand: Optional[str] = None,
        condition: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[Product]:
        data = await self.transport.request(
            PRODUCTS_PATH,
            params={
                "search": search,
                "category": category,
                "min_price": min_price,
                "max_price": max_price,
                "brand": brand,
                "condition": condition,
                "page": page,
                "limit": limit,
            },
        )
        return self._remember(products_from(data))

    async def get_product(self, product_id: int) -> Product:
        data = await self.transport.request(f"{PRODUCTS_PATH}/{product_id}")
        payload = data.get("product") if isinstance(data, dict) and "product" in data else data
        return self._remember([Product.from_payload(payload)])[0]

    async def featured(self) -> list[Product]:
        return self._remember(products_from(await self.transport.request(FEATURED_PATH)))

    async def categories(self) -> list[Category]:
        data = await self.transport.request(CATEGORIES_PATH)
        rows = data.get("categories") if isinstance(data, dict) else data
        return [
            Category(id=int(c["id"]), name=str(c.get("name") or ""), description=c.get("description"))
            for c in rows or []
        ]

    # ---------- seller ----------
    def _require_seller(self, action: str) -> User:
        user = self.context.current_user()
        if user is None or not user.is_seller:
            raise ClientInputError(f"Only sellers can {action}.")
        return user

    async def seller_products(self) -> list[Product]:
        self._require_seller("list their products")
        return self._remember(products_from(await self.transport.request(SELLER_PRODUCTS_PATH)))

    async def create_product(self, product: dict[str, Any]) -> Product:
        user = self._require_seller("create products")
        body = {k: v for k, v in product.items() if k != "seller_id"}
        data = await self.transport.request(
            SELLER_PRODUCTS_PATH, "POST", body, params={"seller_id": user.id}
        )
        return self._remember([Product.from_payload(data)])[0]

    async def update_product(self, product_id: int, changes: dict[str, Any]) -> Product:
        self._require_seller("update products")
        self.invalidate(product_id)
        data = await self.transport.request(
            f"{SELLER_PRODUCTS_PATH}/{product_id}", "PUT", changes
        )
        return Product.from_payload(data)

    async def delete_product(self, product_id: int) -> None:
        self._require_seller("delete products")
        self.invalidate(product_id)
        await self.transport.request(f"{SELLER_PRODUCTS_PATH}/{product_id}", "DELETE")

    async def analyze_image(self, image: bytes, *, filename: str = "image.jpg", content_type: str = "image/jpeg") -> ImageAnalysis:
        user = self._require_seller("analyze images")
        data = await self.transport.upload(
            ANALYZE_IMAGE_PATH,
            {"image": (filename, image, content_type)},
            {"seller_id": str(user.id)},
        )
        suggested = (data or {}).get("suggested_product") or {}
        return ImageAnalysis(
            name=str(suggested.get("name") or ""),
            description=str(suggested.get("description") or ""),
            suggested_price=float(suggested.get("suggested_price") or 0.0),
            brand=str(suggested.get("brand") or ""),
            model=str(suggested.get("model") or ""),
            suggested_category=str(suggested.get("suggested_category") or ""),
            confidence_score=float(suggested.get("confidence_score") or 0.0),
            specifications=dict(suggested.get("specifications") or {}),
        )

    async def update_price_with_voice(self, recording: VoiceRecording, product_id: int) -> dict:
        self._require_seller("update prices")
        self.invalidate(product_id)
        audio = recording.consume()
        return await self.transport.upload(
            VOICE_PRICE_PATH,
            {"audio_file": (recording.filename, audio, recording.mime_type)},
            {"product_id": str(product_id)},
        ) or {}

    async def analytics(self) -> dict:
        self._require_seller("view analytics")
        return await self.transport.request(ANALYTICS_PATH) or {}
