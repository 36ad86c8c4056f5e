"""Async HTTP client for the back-office REST API.

Resource groups mirror the routers mounted under ``/api/v1``::

    async with ApiClient() as api:
        customers = await api.customers.list(q="sharma")
        created = await api.quotations.create(payload)

Bodies are sent as JSON with ``Decimal`` values rendered as strings so no
precision is lost on the way. Non-2xx responses raise :class:`ApiError`.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

import httpx

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Structured error from a non-2xx response.

    ``errors`` holds the ``{"field", "message"}`` entries of a 422 body so a
    form can show them next to the offending inputs.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.errors = errors or []
        super().__init__(message)


def jsonable(value: Any) -> Any:
    """Recursively convert a payload into JSON-safe primitives."""
    if isinstance(value, dict):
        return {key: jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(item) for item in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _query(params: dict[str, Any]) -> dict[str, str]:
    """Drop unset parameters; render booleans the way FastAPI parses them."""
    query: dict[str, str] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            query[key] = "true" if value else "false"
        else:
            query[key] = str(jsonable(value))
    return query


# ─── Resource groups ──────────────────────────────────────────────────────────


class _Resource:
    def __init__(self, client: ApiClient) -> None:
        self._client = client


class CustomersApi(_Resource):
    async def list(self, q: str | None = None, active: bool | None = None) -> list[dict]:
        return await self._client.get("/customers", params={"q": q, "active": active})

    async def get(self, customer_id: UUID | str) -> dict:
        return await self._client.get(f"/customers/{customer_id}")

    async def create(self, payload: dict) -> dict:
        return await self._client.post("/customers", json=payload)

    async def update(self, customer_id: UUID | str, payload: dict) -> dict:
        return await self._client.patch(f"/customers/{customer_id}", json=payload)

    async def add_address(self, customer_id: UUID | str, payload: dict) -> dict:
        return await self._client.post(f"/customers/{customer_id}/addresses", json=payload)


class ProductsApi(_Resource):
    async def list(
        self,
        q: str | None = None,
        category: str | None = None,
        include_inactive: bool | None = None,
    ) -> list[dict]:
        return await self._client.get(
            "/inventory/products",
            params={"q": q, "category": category, "includeInactive": include_inactive},
        )

    async def get(self, product_id: UUID | str) -> dict:
        return await self._client.get(f"/inventory/products/{product_id}")

    async def create(self, payload: dict) -> dict:
        return await self._client.post("/inventory/products", json=payload)

    async def update(self, product_id: UUID | str, payload: dict) -> dict:
        return await self._client.patch(f"/inventory/products/{product_id}", json=payload)


class StockApi(_Resource):
    async def list(self, **params: Any) -> dict:
        """Paged stock rows; keyword names are sent as given (``lowStock`` etc.)."""
        return await self._client.get("/inventory/stock", params=params)

    async def summary(self, location: UUID | str | None = None) -> list[dict]:
        return await self._client.get("/inventory/stock/summary", params={"location": location})

    async def adjust(self, payload: dict) -> dict:
        return await self._client.post("/inventory/stock/adjust", json=payload)


class LocationsApi(_Resource):
    async def list(self, include_inactive: bool | None = None) -> list[dict]:
        return await self._client.get(
            "/inventory/locations", params={"includeInactive": include_inactive}
        )

    async def default(self) -> dict:
        return await self._client.get("/inventory/locations/default")

    async def create(self, payload: dict) -> dict:
        return await self._client.post("/inventory/locations", json=payload)

    async def rooms(self, location_id: UUID | str) -> list[dict]:
        return await self._client.get(f"/inventory/locations/{location_id}/rooms")

    async def create_room(self, location_id: UUID | str, name: str) -> dict:
        return await self._client.post(
            f"/inventory/locations/{location_id}/rooms", json={"name": name}
        )


class UsersApi(_Resource):
    async def list(self, role: str | None = None, active: bool | None = None) -> list[dict]:
        return await self._client.get("/users", params={"role": role, "active": active})

    async def engineers(self) -> list[dict]:
        return await self._client.get("/users/engineers")

    async def create(self, payload: dict) -> dict:
        return await self._client.post("/users", json=payload)

    async def update(self, user_id: UUID | str, payload: dict) -> dict:
        return await self._client.patch(f"/users/{user_id}", json=payload)


class _DocumentApi(_Resource):
    """Create / list / get / update / status for one document router."""

    path = ""

    async def list(self, **params: Any) -> dict:
        return await self._client.get(self.path, params=params)

    async def get(self, document_id: UUID | str) -> dict:
        return await self._client.get(f"{self.path}/{document_id}")

    async def create(self, payload: dict) -> dict:
        return await self._client.post(self.path, json=payload)

    async def update(self, document_id: UUID | str, payload: dict) -> dict:
        return await self._client.put(f"{self.path}/{document_id}", json=payload)

    async def set_status(self, document_id: UUID | str, status: str, **extra: Any) -> dict:
        return await self._client.patch(
            f"{self.path}/{document_id}/status", json={"status": status, **extra}
        )


class _PayableDocumentApi(_DocumentApi):
    async def record_payment(self, document_id: UUID | str, payload: dict) -> dict:
        return await self._client.patch(f"{self.path}/{document_id}/payment", json=payload)


class _ExportableDocumentApi(_PayableDocumentApi):
    async def export(self, **params: Any) -> bytes:
        return await self._client.get(f"{self.path}/export", params=params)


class QuotationsApi(_PayableDocumentApi):
    path = "/quotations"

    async def calculate(self, payload: dict) -> dict:
        return await self._client.post(f"{self.path}/calculate", json=payload)


class AMCQuotationsApi(_DocumentApi):
    path = "/amc-quotations"


class DGInvoicesApi(_ExportableDocumentApi):
    path = "/dg-invoices"

    async def delete(self, document_id: UUID | str) -> None:
        await self._client.delete(f"{self.path}/{document_id}")


class POFromCustomersApi(_ExportableDocumentApi):
    path = "/po-from-customers"

    async def set_status(
        self, document_id: UUID | str, status: str, notes: str | None = None
    ) -> dict:
        extra = {"notes": notes} if notes else {}
        return await super().set_status(document_id, status, **extra)


class GeneralSettingsApi(_Resource):
    async def get(self) -> dict:
        return await self._client.get("/general-settings")

    async def update(self, payload: dict) -> dict:
        return await self._client.put("/general-settings", json=payload)


class QRCodeApi(_Resource):
    async def upload(self, filename: str, content: bytes, content_type: str) -> dict:
        return await self._client.request(
            "POST", "/qr-code/upload", files={"file": (filename, content, content_type)}
        )


# ─── Client ───────────────────────────────────────────────────────────────────


class ApiClient:
    """HTTP client for the back-office API, one ``httpx.AsyncClient`` per instance."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.API_TIMEOUT_SECONDS,
            transport=transport,
            headers={"Accept": "application/json"},
        )

        self.customers = CustomersApi(self)
        self.products = ProductsApi(self)
        self.stock = StockApi(self)
        self.locations = LocationsApi(self)
        self.users = UsersApi(self)
        self.quotations = QuotationsApi(self)
        self.amc_quotations = AMCQuotationsApi(self)
        self.dg_invoices = DGInvoicesApi(self)
        self.po_from_customers = POFromCustomersApi(self)
        self.general_settings = GeneralSettingsApi(self)
        self.qr_code = QRCodeApi(self)

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @staticmethod
    def _handle_response(resp: httpx.Response) -> Any:
        """Return the decoded body or raise :class:`ApiError`.

        JSON bodies are parsed; anything else (spreadsheet downloads) is
        returned as raw bytes. A 204 returns ``None``.
        """
        if resp.status_code == 204:
            return None

        try:
            data: Any = resp.json()
        except ValueError:
            if resp.status_code >= 400:
                raise ApiError(
                    status_code=resp.status_code,
                    message=resp.text or f"HTTP {resp.status_code}",
                )
            return resp.content

        if resp.status_code >= 400:
            detail = data.get("detail") if isinstance(data, dict) else None
            errors = data.get("errors") if isinstance(data, dict) else None
            if isinstance(detail, list):
                # FastAPI's own validation shape
                errors = errors or [
                    {
                        "field": ".".join(str(p) for p in e.get("loc", ())[1:]),
                        "message": e.get("msg", "Invalid value"),
                    }
                    for e in detail
                ]
                detail = "Validation failed"
            raise ApiError(
                status_code=resp.status_code,
                message=str(detail or f"HTTP {resp.status_code}"),
                errors=errors,
            )
        return data

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        files: dict[str, Any] | None = None,
    ) -> Any:
        kwargs: dict[str, Any] = {}
        if params:
            kwargs["params"] = _query(params)
        if json is not None:
            kwargs["json"] = jsonable(json)
        if files is not None:
            kwargs["files"] = files

        resp = await self._http.request(method, path, **kwargs)
        logger.debug("%s %s -> %s", method, path, resp.status_code)
        return self._handle_response(resp)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)
