"""
Cozy Cove — AliExpress Affiliate API Client

Fetches raw product records from the AliExpress affiliate "sync" endpoint:
- aliexpress.affiliate.product.query (keyword/category search)
- aliexpress.affiliate.productdetail.get (lookup by id)

Request signing (HMAC over the sorted parameters) is not done here: callers
inject a signer callable. Without one, requests go out unsigned.

Records come back raw; src.catalog.normalize turns them into Products.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any, Literal

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from src.catalog.schemas import AliExpressProductRaw
from src.config import settings
from src.utils.timeutils import utc_now

logger = structlog.get_logger(__name__)

QUERY_METHOD = "aliexpress.affiliate.product.query"
DETAIL_METHOD = "aliexpress.affiliate.productdetail.get"

RequestSigner = Callable[[dict[str, str]], str]


class AliExpressAPIError(RuntimeError):
    """The API answered with an error envelope or kept failing."""


# ---------------------------------------------------------------------------
# Pydantic Request / Response Models
# ---------------------------------------------------------------------------


class AliExpressSearchParams(BaseModel):
    """Parameters for aliexpress.affiliate.product.query."""

    keywords: str | None = None
    category_ids: str | None = None
    min_sale_price: float | None = None
    max_sale_price: float | None = None
    page_no: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=50)
    sort: Literal[
        "SALE_PRICE_ASC", "SALE_PRICE_DESC", "LAST_VOLUME_DESC", "DISCOUNT_DESC"
    ] | None = None
    ship_to_country: str | None = None
    target_currency: str | None = None
    target_language: str | None = None


class AliExpressSearchPage(BaseModel):
    """One page of raw search results."""

    products: list[AliExpressProductRaw] = Field(default_factory=list)
    total: int = 0
    page_no: int = 1


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class AliExpressClient:
    """
    Async client for the AliExpress affiliate API.

    Usage:
        async with AliExpressClient(signer=my_signer) as client:
            page = await client.search_category("home-decor")
            products = normalize_all(page.products)
    """

    def __init__(
        self,
        app_key: str | None = None,
        tracking_id: str | None = None,
        api_url: str | None = None,
        signer: RequestSigner | None = None,
        max_retries: int = 3,
        base_backoff: float = 1.0,
    ):
        self._app_key = app_key if app_key is not None else settings.ALIEXPRESS_APP_KEY
        self._tracking_id = tracking_id if tracking_id is not None else settings.ALIEXPRESS_TRACKING_ID
        self._api_url = api_url or settings.ALIEXPRESS_API_URL
        self._signer = signer
        self._max_retries = max_retries
        self._base_backoff = base_backoff
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self._app_key)

    async def __aenter__(self) -> AliExpressClient:
        self._client = httpx.AsyncClient(
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
            timeout=settings.ALIEXPRESS_TIMEOUT_SECONDS,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    def _build_params(self, method: str, params: dict[str, str]) -> dict[str, str]:
        """System parameters + business parameters, signed when a signer is set."""
        final_params = {
            "app_key": self._app_key,
            "method": method,
            "sign_method": "hmac-sha256",
            "timestamp": utc_now().strftime("%Y%m%d%H%M%S"),
            "format": "json",
            "v": "2.0",
            **params,
        }
        if self._signer is not None:
            final_params["sign"] = self._signer(final_params)
        return final_params

    async def _request(self, method: str, params: dict[str, str]) -> dict[str, Any]:
        """POST an API method with retry logic and exponential backoff."""
        assert self._client is not None, "Client not initialized. Use 'async with'."

        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.post(
                    self._api_url, params=self._build_params(method, params)
                )

                if response.status_code == 429:
                    wait_time = self._base_backoff * (2 ** attempt)
                    logger.warning(
                        "aliexpress_rate_limited",
                        method=method,
                        attempt=attempt + 1,
                        wait_seconds=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                    continue

                response.raise_for_status()
                data = response.json()
                break

            except httpx.HTTPStatusError as e:
                last_error = e
                logger.error(
                    "aliexpress_http_error",
                    status_code=e.response.status_code,
                    attempt=attempt + 1,
                    method=method,
                )
                if e.response.status_code >= 500:
                    wait_time = self._base_backoff * (2 ** attempt)
                    await asyncio.sleep(wait_time)
                    continue
                raise

            except httpx.RequestError as e:
                last_error = e
                logger.error(
                    "aliexpress_request_error",
                    error=str(e),
                    attempt=attempt + 1,
                    method=method,
                )
                wait_time = self._base_backoff * (2 ** attempt)
                await asyncio.sleep(wait_time)
                continue
        else:
            raise AliExpressAPIError(
                f"AliExpress API request failed after {self._max_retries + 1} attempts"
            ) from last_error

        error = data.get("error_response")
        if error:
            logger.error(
                "aliexpress_error_response",
                method=method,
                code=error.get("code"),
                msg=error.get("msg"),
                request_id=error.get("request_id"),
            )
            raise AliExpressAPIError(error.get("msg") or "AliExpress API error")

        return data

    @staticmethod
    def _parse_products(result: dict[str, Any]) -> list[AliExpressProductRaw]:
        raw_products = (result.get("products") or {}).get("product") or []

        products: list[AliExpressProductRaw] = []
        for raw in raw_products:
            try:
                products.append(AliExpressProductRaw.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    "aliexpress_parse_error",
                    error=str(e),
                    raw=str(raw)[:100],
                )
        return products

    @staticmethod
    def _extract_result(data: dict[str, Any], envelope: str) -> dict[str, Any]:
        resp_result = (data.get(envelope) or {}).get("resp_result") or {}
        resp_code = resp_result.get("resp_code")
        if resp_code is not None and resp_code != 200:
            logger.warning(
                "aliexpress_unexpected_resp_code",
                envelope=envelope,
                resp_code=resp_code,
                resp_msg=resp_result.get("resp_msg"),
            )
        return resp_result.get("result") or {}

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def search_products(self, search: AliExpressSearchParams) -> AliExpressSearchPage:
        """
        Run a product query.

        Args:
            search: Keyword, category, price and paging parameters.

        Returns:
            AliExpressSearchPage with raw records and the total record count.
        """
        params: dict[str, str] = {
            "tracking_id": self._tracking_id,
            "target_currency": search.target_currency or settings.ALIEXPRESS_TARGET_CURRENCY,
            "target_language": search.target_language or settings.ALIEXPRESS_TARGET_LANGUAGE,
            "page_no": str(search.page_no),
            "page_size": str(search.page_size),
        }
        if search.keywords:
            params["keywords"] = search.keywords
        if search.category_ids:
            params["category_ids"] = search.category_ids
        if search.min_sale_price:
            params["min_sale_price"] = str(search.min_sale_price)
        if search.max_sale_price:
            params["max_sale_price"] = str(search.max_sale_price)
        if search.sort:
            params["sort"] = search.sort
        if search.ship_to_country:
            params["ship_to_country"] = search.ship_to_country

        logger.info(
            "aliexpress_search",
            keywords=search.keywords,
            category_ids=search.category_ids,
            page_no=search.page_no,
        )

        data = await self._request(QUERY_METHOD, params)
        result = self._extract_result(data, "aliexpress_affiliate_product_query_response")
        products = self._parse_products(result)

        page = AliExpressSearchPage(
            products=products,
            total=result.get("total_record_count") or len(products),
            page_no=result.get("current_page_no") or search.page_no,
        )
        logger.info(
            "aliexpress_search_complete",
            keywords=search.keywords,
            result_count=len(products),
            total=page.total,
        )
        return page

    async def search_category(
        self,
        category_key: str,
        page_no: int = 1,
        page_size: int | None = None,
    ) -> AliExpressSearchPage:
        """
        Search one of the curated CATALOG_CATEGORIES.

        Raises:
            ValueError: if category_key is not configured.
        """
        category = settings.CATALOG_CATEGORIES.get(category_key)
        if category is None:
            raise ValueError(f"Unknown catalog category: {category_key!r}")

        return await self.search_products(
            AliExpressSearchParams(
                keywords=category.get("keywords"),
                category_ids=category.get("category_ids"),
                max_sale_price=category.get("max_price"),
                page_no=page_no,
                page_size=page_size or settings.ALIEXPRESS_PAGE_SIZE,
            )
        )

    async def get_product_details(
        self, product_ids: Sequence[str]
    ) -> list[AliExpressProductRaw]:
        """Look up raw records for specific product ids."""
        if not product_ids:
            return []

        data = await self._request(
            DETAIL_METHOD,
            {
                "tracking_id": self._tracking_id,
                "product_ids": ",".join(product_ids),
                "target_currency": settings.ALIEXPRESS_TARGET_CURRENCY,
                "target_language": settings.ALIEXPRESS_TARGET_LANGUAGE,
            },
        )
        result = self._extract_result(data, "aliexpress_affiliate_productdetail_get_response")
        products = self._parse_products(result)

        logger.info(
            "aliexpress_details_complete",
            requested=len(product_ids),
            result_count=len(products),
        )
        return products
