"""Structured JSON logging for storefront and back-office events"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from pharmacy_core.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: Optional[str] = None) -> None:
    """
    Route the root logger to stdout as JSON.

    httpx and httpcore log every request at INFO; they are held at WARNING
    so cart and order events are not drowned out.
    """
    root = logging.getLogger()
    root.setLevel(level or settings.log_level)
    root.handlers.clear()

    stdout = logging.StreamHandler(sys.stdout)
    stdout.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    root.addHandler(stdout)

    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def log_cart_mutation(operation: str, product_id: Optional[str], quantity: Optional[int] = None) -> None:
    """Log a persisted cart change"""
    logging.info(
        "Cart updated",
        extra={
            "step": "cart_mutation",
            "operation": operation,
            "product_id": product_id,
            "quantity": quantity,
        },
    )


def log_order_transition(
    order_id: str,
    event: str,
    from_status: Optional[str],
    to_status: Optional[str],
    actor_id: Optional[str],
) -> None:
    """Log an order lifecycle event confirmed by the order service"""
    logging.info(
        "Order transition",
        extra={
            "step": "order_transition",
            "order_id": order_id,
            "event": event,
            "from_status": from_status,
            "to_status": to_status,
            "actor_id": actor_id,
        },
    )


def log_cache_rollback(entity: str, error: BaseException, restored: bool) -> None:
    """Log an optimistic mutation that the server rejected"""
    logging.warning(
        "Optimistic update rolled back",
        extra={
            "step": "cache_rollback",
            "entity": entity,
            "error": str(error),
            "restored_snapshot": restored,
        },
    )
