"""Product catalogue: browse, view and edit listings."""
from ukulima.core.constants import NS_PRODUCTS
from ukulima.offline.actions import ActionKind, UpdateProduct


def listing_key(page: int, filters: dict | None) -> str:
    """Mirror key for one page of a filtered listing."""
    parts = [f"page={page}"]
    parts += [f"{k}={v}" for k, v in sorted((filters or {}).items())]
    return "listing:" + "&".join(parts)


class ProductsManager:
    """Paged, filterable product listing."""

    def __init__(self, manager):
        self.manager = manager
        self.products: list[dict] = []
        self.filters: dict = {}
        self.pagination = {"current_page": 1, "total_pages": 1, "total": 0, "has_more": True}
        manager.register_collaborator("products", lambda: self.load_products(reset=True),
                                      kinds=[ActionKind.UPDATE_PRODUCT])

    async def load_products(self, reset: bool = False, filters: dict | None = None) -> dict:
        """Load the next page of products (or the first, if reset).

        Returns:
            Dict with products, source ("remote", "mirror" or "none") and page
        """
        if filters is not None:
            self.filters = dict(filters)
            reset = True
        if reset:
            self.products = []
            self.pagination = {"current_page": 1, "total_pages": 1, "total": 0, "has_more": True}

        page = self.pagination["current_page"]
        if not self.pagination["has_more"]:
            return {"products": self.products, "source": "none", "page": page}

        data, source = await self.manager.read_through(
            NS_PRODUCTS,
            listing_key(page, self.filters),
            lambda: self.manager.remote.list_products(page, self.filters),
        )
        if data is None:
            return {"products": self.products, "source": source, "page": page}

        batch = data.get("products", [])
        self.products.extend(batch)
        if source == "remote":
            for product in batch:
                if product.get("_id"):
                    self.manager.put(NS_PRODUCTS, product["_id"], product)

        current = data.get("currentPage", page)
        total_pages = data.get("totalPages", 1)
        self.pagination = {
            "current_page": current + 1,
            "total_pages": total_pages,
            "total": data.get("total", len(self.products)),
            "has_more": current < total_pages,
        }
        return {"products": self.products, "source": source, "page": page}

    async def get_product(self, product_id: str) -> dict | None:
        product, _ = await self.manager.read_through(
            NS_PRODUCTS, product_id, lambda: self.manager.remote.get_product(product_id))
        return product

    async def update_product(self, product_id: str, data: dict) -> dict:
        """Apply an edit locally and send it (or queue it)."""
        for product in self.products:
            if product.get("_id") == product_id:
                product.update(data)

        outcome = await self.manager.submit(UpdateProduct(product_id=product_id, data=data))
        if outcome["status"] == "sent" and isinstance(outcome["result"], dict):
            self.manager.put(NS_PRODUCTS, product_id, outcome["result"])
        return outcome
