from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone
from typing import Any

from vitrine_core.auth.guards import optional_str, require_auth, require_str
from vitrine_core.auth.types import AuthContext
from vitrine_core.config import Config
from vitrine_core.errors import (
    InvalidArgumentError,
    NotFoundError,
    PreconditionError,
)
from vitrine_core.logging import get_logger
from vitrine_core.stores.interfaces import DocumentStore, Transaction

logger = get_logger(__name__)

STATUS_ISSUED = "issued"
STATUS_PAUSED = "paused"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED})

REQUEST_CONVERTED = "converted_to_work_order"
REQUEST_PAUSED = "work_order_paused"
REQUEST_COMPLETED = "work_order_completed"

_COPIED_FIELDS = ("matrix", "client", "samples", "analyses", "pricing")
_NUMBER_ALPHABET = string.digits + string.ascii_uppercase


def _now() -> datetime:
    return datetime.now(timezone.utc)


def build_temp_work_order_number(now: datetime | None = None) -> str:
    year = (now or _now()).year
    suffix = "".join(secrets.choice(_NUMBER_ALPHABET) for _ in range(8))
    return f"OT-TMP-{year}-{suffix}"


def _load_request(
    transaction: Transaction,
    config: Config,
    request_id: str,
) -> dict[str, Any]:
    request = transaction.get(config.service_requests_collection, request_id)
    if request is None:
        raise NotFoundError("Service request not found.")
    return request


def _linked_id(request: dict[str, Any]) -> str | None:
    value = request.get("linkedWorkOrderId")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _ensure_not_terminal(work_order: dict[str, Any], action: str) -> None:
    status = work_order.get("status")
    if status in TERMINAL_STATUSES:
        raise PreconditionError(f"Cannot {action} a work order that is {status}.")


def create_work_order(
    store: DocumentStore,
    config: Config,
    auth: AuthContext | None,
    data: dict[str, Any] | None,
) -> dict[str, Any]:
    require_auth(auth)
    source_request_id = require_str(data, "sourceRequestId")
    force_emit = bool((data or {}).get("forceEmit"))

    def _txn(transaction: Transaction) -> dict[str, Any]:
        source = _load_request(transaction, config, source_request_id)
        if not source.get("isWorkOrder") and not force_emit:
            raise PreconditionError(
                "This service request is not eligible to generate a work order."
            )

        linked_id = _linked_id(source)
        if linked_id:
            existing = transaction.get(config.work_orders_collection, linked_id)
            number = (existing or {}).get("workOrderNumber") or "OT-EXISTING"
            return {
                "workOrderId": linked_id,
                "workOrderNumber": number,
                "alreadyExists": True,
            }

        work_order_id = store.new_id(config.work_orders_collection)
        work_order_number = build_temp_work_order_number()
        now = _now()
        work_order: dict[str, Any] = {
            "workOrderNumber": work_order_number,
            "status": STATUS_ISSUED,
            "sourceRequestId": source_request_id,
            "sourceReference": source.get("reference"),
            "notes": source.get("notes") or "",
            "createdAt": now,
            "updatedAt": now,
            "issuedAt": now,
        }
        for field in _COPIED_FIELDS:
            work_order[field] = source.get(field)
        transaction.set(config.work_orders_collection, work_order_id, work_order)
        transaction.update(
            config.service_requests_collection,
            source_request_id,
            {
                "isWorkOrder": True,
                "status": REQUEST_CONVERTED,
                "linkedWorkOrderId": work_order_id,
                "updatedAt": now,
            },
        )
        return {
            "workOrderId": work_order_id,
            "workOrderNumber": work_order_number,
            "alreadyExists": False,
        }

    result = store.run_transaction(_txn)
    logger.info(
        "Work order created",
        extra={
            "operation": "create_work_order",
            "work_order_id": result["workOrderId"],
            "source_request_id": source_request_id,
            "status": "existing" if result["alreadyExists"] else STATUS_ISSUED,
        },
    )
    return result


def _transition_linked(
    store: DocumentStore,
    config: Config,
    source_request_id: str,
    *,
    action: str,
    work_order_status: str,
    request_status: str,
    timestamp_field: str,
) -> dict[str, Any]:
    def _txn(transaction: Transaction) -> dict[str, Any]:
        source = _load_request(transaction, config, source_request_id)
        linked_id = _linked_id(source)
        if not linked_id:
            raise PreconditionError(
                f"This request has no linked work order to {action}."
            )
        work_order = transaction.get(config.work_orders_collection, linked_id)
        if work_order is None:
            raise NotFoundError("Linked work order not found.")
        _ensure_not_terminal(work_order, action)

        now = _now()
        transaction.update(
            config.work_orders_collection,
            linked_id,
            {"status": work_order_status, timestamp_field: now, "updatedAt": now},
        )
        transaction.update(
            config.service_requests_collection,
            source_request_id,
            {"isWorkOrder": True, "status": request_status, "updatedAt": now},
        )
        return {
            "workOrderId": linked_id,
            "workOrderNumber": work_order.get("workOrderNumber") or linked_id,
            "status": work_order_status,
        }

    result = store.run_transaction(_txn)
    logger.info(
        "Work order transitioned",
        extra={
            "operation": f"{action}_work_order",
            "work_order_id": result["workOrderId"],
            "source_request_id": source_request_id,
            "status": work_order_status,
        },
    )
    return result


def pause_work_order(
    store: DocumentStore,
    config: Config,
    auth: AuthContext | None,
    data: dict[str, Any] | None,
) -> dict[str, Any]:
    require_auth(auth)
    source_request_id = require_str(data, "sourceRequestId")
    return _transition_linked(
        store,
        config,
        source_request_id,
        action="pause",
        work_order_status=STATUS_PAUSED,
        request_status=REQUEST_PAUSED,
        timestamp_field="pausedAt",
    )


def resume_work_order(
    store: DocumentStore,
    config: Config,
    auth: AuthContext | None,
    data: dict[str, Any] | None,
) -> dict[str, Any]:
    require_auth(auth)
    source_request_id = require_str(data, "sourceRequestId")
    return _transition_linked(
        store,
        config,
        source_request_id,
        action="resume",
        work_order_status=STATUS_ISSUED,
        request_status=REQUEST_CONVERTED,
        timestamp_field="resumedAt",
    )


def complete_work_order(
    store: DocumentStore,
    config: Config,
    auth: AuthContext | None,
    data: dict[str, Any] | None,
) -> dict[str, Any]:
    require_auth(auth)
    work_order_id = optional_str(data, "workOrderId")
    source_request_input = optional_str(data, "sourceRequestId")
    if not work_order_id and not source_request_input:
        raise InvalidArgumentError("workOrderId or sourceRequestId is required.")

    def _txn(transaction: Transaction) -> dict[str, Any]:
        target_id = work_order_id
        if target_id:
            work_order = transaction.get(config.work_orders_collection, target_id)
        else:
            matches = transaction.query(
                config.work_orders_collection,
                [("sourceRequestId", "==", source_request_input)],
                limit=1,
            )
            if not matches:
                raise NotFoundError(
                    "No work order found for the provided sourceRequestId."
                )
            target_id = matches[0].id
            work_order = matches[0].data
        if work_order is None:
            raise NotFoundError("Work order not found.")

        source_request_id = source_request_input or str(
            work_order.get("sourceRequestId") or ""
        ).strip()
        if not source_request_id:
            raise PreconditionError("The work order has no sourceRequestId to update.")
        request = transaction.get(config.service_requests_collection, source_request_id)
        if request is None:
            raise NotFoundError("Source service request not found.")
        _ensure_not_terminal(work_order, "complete")

        now = _now()
        transaction.update(
            config.work_orders_collection,
            target_id,
            {"status": STATUS_COMPLETED, "completedAt": now, "updatedAt": now},
        )
        transaction.update(
            config.service_requests_collection,
            source_request_id,
            {"status": REQUEST_COMPLETED, "updatedAt": now},
        )
        return {
            "workOrderId": target_id,
            "workOrderNumber": work_order.get("workOrderNumber") or target_id,
            "sourceRequestId": source_request_id,
            "status": STATUS_COMPLETED,
        }

    result = store.run_transaction(_txn)
    logger.info(
        "Work order completed",
        extra={
            "operation": "complete_work_order",
            "work_order_id": result["workOrderId"],
            "source_request_id": result["sourceRequestId"],
            "status": STATUS_COMPLETED,
        },
    )
    return result


def delete_service_request(
    store: DocumentStore,
    config: Config,
    auth: AuthContext | None,
    data: dict[str, Any] | None,
) -> dict[str, Any]:
    """Archive the request, cancel its work order and remove the live request."""
    caller = require_auth(auth)
    source_request_id = require_str(data, "sourceRequestId")

    def _txn(transaction: Transaction) -> None:
        source = _load_request(transaction, config, source_request_id)

        work_order_id = _linked_id(source)
        work_order = None
        if work_order_id:
            work_order = transaction.get(config.work_orders_collection, work_order_id)
        if work_order is None:
            matches = transaction.query(
                config.work_orders_collection,
                [("sourceRequestId", "==", source_request_id)],
                limit=1,
            )
            work_order_id = matches[0].id if matches else None
            work_order = matches[0].data if matches else None

        now = _now()
        # Completed orders keep their terminal state.
        if work_order_id and work_order is not None and (
            work_order.get("status") not in TERMINAL_STATUSES
        ):
            transaction.set(
                config.work_orders_collection,
                work_order_id,
                {"status": STATUS_CANCELLED, "cancelledAt": now, "updatedAt": now},
                merge=True,
            )
        archived = dict(source)
        archived.update(
            {
                "originalRequestId": source_request_id,
                "deletedAt": now,
                "deletedBy": {"uid": caller.uid, "email": caller.email},
            }
        )
        transaction.set(
            config.deleted_service_requests_collection,
            source_request_id,
            archived,
        )
        transaction.delete(config.service_requests_collection, source_request_id)

    store.run_transaction(_txn)
    logger.info(
        "Service request deleted",
        extra={
            "operation": "delete_service_request",
            "source_request_id": source_request_id,
        },
    )
    return {"deletedRequestId": source_request_id}
