"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from dscr_underwriter.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_rate_computation(
    request_id: str,
    loan_id: str,
    interest_rate: str,
    dscr: str,
    rate_pending: bool,
    duration_ms: float,
) -> None:
    """Log structured rate computation outcome for analysis"""
    logging.info(
        "Rate computation completed",
        extra={
            "request_id": request_id,
            "loan_id": loan_id,
            "step": "rate_computed",
            "outcome": "pending_approval" if rate_pending else "applied",
            "interest_rate": interest_rate,
            "dscr": dscr,
            "duration_ms": duration_ms,
        },
    )


def log_rate_change_resolution(
    request_id: str,
    change_id: int,
    resolution: str,
    actor: str,
    success: bool,
    loan_id: Optional[str] = None,
) -> None:
    """Log an approve/reject attempt, including refused ones"""
    logging.log(
        logging.INFO if success else logging.WARNING,
        "Rate change resolution",
        extra={
            "request_id": request_id,
            "change_id": change_id,
            "loan_id": loan_id,
            "step": "rate_change_resolved",
            "resolution": resolution,
            "actor": actor,
            "success": success,
        },
    )
