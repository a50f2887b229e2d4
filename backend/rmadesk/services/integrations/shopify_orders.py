"""Shopify Admin GraphQL client for order lookup and webhook verification."""

import base64
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from rmadesk.core.config import settings

logger = logging.getLogger(__name__)

ORDER_FIELDS = """
  id
  name
  legacyResourceId
  processedAt
  email
  phone
  customer { id firstName lastName email phone }
  lineItems(first: 50) {
    edges { node { id name sku variant { sku barcode } } }
  }
"""

FIND_ORDERS_QUERY = (
    "query findOrders($first: Int!, $query: String) {"
    " orders(first: $first, query: $query, sortKey: PROCESSED_AT, reverse: true) {"
    " edges { node {" + ORDER_FIELDS + "} } } }"
)

ORDER_BY_ID_QUERY = "query orderById($id: ID!) { order(id: $id) {" + ORDER_FIELDS + "} }"


class ShopifyError(Exception):
    """Raised when the Shopify Admin API cannot be reached or returns errors."""


@dataclass
class ShopifyOrder:
    id: str
    name: str | None = None
    legacy_resource_id: str | None = None
    processed_at: datetime | None = None
    email: str | None = None
    phone: str | None = None
    customer_first_name: str | None = None
    customer_last_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    line_items: list[dict[str, Any]] = field(default_factory=list)

    @property
    def customer_name(self) -> str | None:
        name = " ".join(p for p in (self.customer_first_name, self.customer_last_name) if p)
        return name or None

    @property
    def order_number(self) -> int | None:
        if not self.legacy_resource_id:
            return None
        try:
            return int(self.legacy_resource_id)
        except ValueError:
            return None

    @property
    def first_barcode(self) -> str | None:
        for item in self.line_items:
            if item.get("barcode"):
                return str(item["barcode"])
        return None

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> "ShopifyOrder":
        customer = node.get("customer") or {}
        processed_at = None
        if node.get("processedAt"):
            try:
                processed_at = datetime.fromisoformat(str(node["processedAt"]).replace("Z", "+00:00"))
            except ValueError:
                processed_at = None
        items = []
        for edge in (node.get("lineItems") or {}).get("edges", []):
            item = edge.get("node") or {}
            variant = item.get("variant") or {}
            items.append(
                {
                    "id": item.get("id"),
                    "name": item.get("name"),
                    "sku": item.get("sku") or variant.get("sku"),
                    "barcode": variant.get("barcode"),
                }
            )
        return cls(
            id=str(node.get("id")),
            name=node.get("name"),
            legacy_resource_id=node.get("legacyResourceId"),
            processed_at=processed_at,
            email=node.get("email"),
            phone=node.get("phone"),
            customer_first_name=customer.get("firstName"),
            customer_last_name=customer.get("lastName"),
            customer_email=customer.get("email"),
            customer_phone=customer.get("phone"),
            line_items=items,
        )


def to_order_gid(order_id: str) -> str:
    if order_id.startswith("gid://shopify/Order/"):
        return order_id
    if order_id.isdigit():
        return f"gid://shopify/Order/{order_id}"
    return order_id


def verify_shopify_hmac(raw_body: bytes, hmac_header: str | None, secret: str | None = None) -> bool:
    """Check the base64 HMAC-SHA256 Shopify sends in ``X-Shopify-Hmac-Sha256``."""
    secret = secret if secret is not None else settings.SHOPIFY_API_SECRET
    if not secret or not hmac_header:
        return False
    digest = base64.b64encode(
        hmac.new(secret.encode(), raw_body, hashlib.sha256).digest()
    ).decode()
    return hmac.compare_digest(digest, hmac_header)


class ShopifyOrderClient:
    def __init__(
        self,
        store_domain: str | None = None,
        access_token: str | None = None,
        api_version: str | None = None,
    ):
        self.store_domain = store_domain or settings.SHOPIFY_STORE_DOMAIN
        self.access_token = access_token or settings.SHOPIFY_ACCESS_TOKEN
        self.api_version = api_version or settings.SHOPIFY_API_VERSION

    @property
    def is_configured(self) -> bool:
        return bool(self.store_domain and self.access_token)

    def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        if not self.is_configured:
            raise ShopifyError("Shopify is not configured")
        url = f"https://{self.store_domain}/admin/api/{self.api_version}/graphql.json"
        headers = {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=30.0) as client:
                resp = client.post(url, json={"query": query, "variables": variables}, headers=headers)
        except httpx.HTTPError as exc:
            raise ShopifyError(f"Shopify request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise ShopifyError(f"Shopify request failed: {resp.status_code} {resp.text[:500]}")
        body: dict[str, Any] = resp.json()
        if body.get("errors"):
            raise ShopifyError(f"Shopify GraphQL errors: {body['errors']}")
        data: dict[str, Any] = body.get("data") or {}
        return data

    def find_order(self, order_number: str, email: str) -> ShopifyOrder | None:
        """Return the newest order matching both the order number and the buyer's email."""
        name = order_number.strip()
        if name and not name.startswith("#"):
            name = f"#{name}"
        query = f"name:{name} email:{email.strip().lower()}"
        data = self._graphql(FIND_ORDERS_QUERY, {"first": 10, "query": query})
        edges = (data.get("orders") or {}).get("edges") or []
        if not edges:
            return None
        return ShopifyOrder.from_node(edges[0].get("node") or {})

    def get_order(self, order_id: str) -> ShopifyOrder | None:
        data = self._graphql(ORDER_BY_ID_QUERY, {"id": to_order_gid(order_id)})
        node = data.get("order")
        if not node:
            return None
        return ShopifyOrder.from_node(node)
