# batches/services/work_orders.py
"""
WORK-ORDER COLLABORATOR CLIENTS

Contract:
- create_work_order(batch, quantity) -> WorkOrderResult(external_id, status)
- complete_work_order(external_id)   -> WorkOrderResult

Clients raise WorkOrderError on any failure; the batch engine's work-order
step catches it, logs it and records it on the batch.

Selection: settings.WORK_ORDERS["CLIENT"] (dotted path)
- batches.services.work_orders.LocalWorkOrderClient (default, local ids)
- batches.services.work_orders.ErpWorkOrderClient   (JSON over HTTP)
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from django.conf import settings
from django.utils.module_loading import import_string

from batches.services.exceptions import WorkOrderError

logger = logging.getLogger("batches.work_orders")

DEFAULT_CLIENT = "batches.services.work_orders.LocalWorkOrderClient"

STATUS_CREATED = "created"
STATUS_COMPLETED = "completed"


@dataclass(frozen=True)
class WorkOrderResult:
    external_id: str
    status: str


def _work_order_cfg() -> dict:
    cfg = getattr(settings, "WORK_ORDERS", {}) or {}
    return cfg if isinstance(cfg, dict) else {}


def _safe_preview(text: str, limit: int = 500) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + " …(truncated)"


class WorkOrderClient:
    """Base client. Subclasses implement both calls."""

    def __init__(self, **config):
        self.config = config

    def create_work_order(self, batch, quantity: Decimal) -> WorkOrderResult:
        raise NotImplementedError

    def complete_work_order(self, external_id: str) -> WorkOrderResult:
        raise NotImplementedError


class LocalWorkOrderClient(WorkOrderClient):
    """
    No external system: issues LOCAL- ids so the workflow can run offline.
    """

    def create_work_order(self, batch, quantity: Decimal) -> WorkOrderResult:
        external_id = f"LOCAL-{int(batch.run_number or 0):04d}-{uuid.uuid4().hex[:8].upper()}"
        return WorkOrderResult(external_id=external_id, status=STATUS_CREATED)

    def complete_work_order(self, external_id: str) -> WorkOrderResult:
        if not external_id:
            raise WorkOrderError("external_id is required")
        return WorkOrderResult(external_id=external_id, status=STATUS_COMPLETED)


class ErpWorkOrderClient(WorkOrderClient):
    """
    ERP work orders over HTTP (JSON in, JSON out).

    POST {BASE_URL}/work-orders                  -> {"id": "...", "status": "..."}
    POST {BASE_URL}/work-orders/{id}/complete    -> {"id": "...", "status": "..."}
    """

    def __init__(self, **config):
        super().__init__(**config)
        self.base_url = (config.get("BASE_URL") or "").rstrip("/")
        self.api_key = config.get("API_KEY") or ""
        self.timeout = int(config.get("TIMEOUT") or 25)

        if not self.base_url:
            raise WorkOrderError("WORK_ORDER_BASE_URL is not configured")

    def _request_json(self, method: str, path: str, *, body: dict | None = None) -> dict[str, Any]:
        data = None
        if body is not None:
            data = json.dumps(body, ensure_ascii=False, default=str).encode("utf-8")

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        req = Request(f"{self.base_url}{path}", data=data, headers=headers, method=method)

        try:
            with urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
        except HTTPError as e:
            try:
                raw = e.read().decode("utf-8", errors="replace")
            except OSError:
                raw = ""
            raise WorkOrderError(f"ERP HTTPError: {e.code} {_safe_preview(raw) or e.reason}") from e
        except URLError as e:
            raise WorkOrderError(f"ERP URLError: {e.reason}") from e
        except (TimeoutError, OSError) as e:
            raise WorkOrderError(f"ERP request failed: {e}") from e

        try:
            parsed = json.loads(raw or "{}")
        except ValueError as e:
            raise WorkOrderError(f"ERP returned non-JSON: {_safe_preview(raw)}") from e

        if not isinstance(parsed, dict):
            raise WorkOrderError("ERP returned a non-object JSON body")
        return parsed

    @staticmethod
    def _result(parsed: dict, *, default_status: str) -> WorkOrderResult:
        external_id = str(parsed.get("tran_id") or parsed.get("id") or "").strip()
        if not external_id:
            raise WorkOrderError(parsed.get("error") or parsed.get("message") or "ERP response has no work order id")
        return WorkOrderResult(
            external_id=external_id,
            status=str(parsed.get("status") or default_status).strip().lower(),
        )

    def create_work_order(self, batch, quantity: Decimal) -> WorkOrderResult:
        snapshot = batch.snapshot or {}
        payload = {
            "batch_id": str(batch.pk),
            "run_number": batch.run_number,
            "file_name": batch.file_name,
            "assembly_item": snapshot.get("solution_ref") or snapshot.get("product_ref"),
            "quantity": str(quantity),
            "unit": snapshot.get("recipe_unit") or "",
        }
        parsed = self._request_json("POST", "/work-orders", body=payload)
        return self._result(parsed, default_status=STATUS_CREATED)

    def complete_work_order(self, external_id: str) -> WorkOrderResult:
        if not external_id:
            raise WorkOrderError("external_id is required")
        parsed = self._request_json("POST", f"/work-orders/{external_id}/complete", body={})
        return self._result(parsed, default_status=STATUS_COMPLETED)


def get_work_order_client() -> WorkOrderClient:
    cfg = _work_order_cfg()
    path = (cfg.get("CLIENT") or DEFAULT_CLIENT).strip()

    try:
        client_cls = import_string(path)
    except ImportError as exc:
        raise WorkOrderError(f"Cannot load work-order client '{path}'") from exc

    return client_cls(**cfg)
