"""Rate notice webhook client with exponential backoff retry logic"""

import asyncio
from typing import Any, Dict

import httpx

from dscr_underwriter.config import settings
from dscr_underwriter.domain.models import RateComputation
from dscr_underwriter.infrastructure.observability.metrics import notice_failure_counter, notice_latency_histogram
from dscr_underwriter.utils.decimal_utils import quantize

RATE_APPLIED_EVENT = "RATE_APPLIED"


def build_rate_notice(loan_id: str, interest_rate: str, principal: str) -> Dict[str, Any]:
    """Payload announcing a rate now in force on a loan"""
    return {
        "event": RATE_APPLIED_EVENT,
        "loan_id": loan_id,
        "interest_rate": interest_rate,
        "principal": principal,
    }


def notice_for_computation(result: RateComputation) -> Dict[str, Any]:
    return build_rate_notice(result.loan_id, format(quantize(result.interest_rate, 6), "f"), str(result.principal))


class NoticeClient:
    """Client for publishing applied rates to the settlement layer"""

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url or settings.notice_webhook_url
        self.timeout = settings.http_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base

    async def send_rate_notice(self, payload: Dict[str, Any]) -> None:
        """
        Send a RATE_APPLIED notice with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s, 16s (base^attempt)
        - Retries on HTTP errors and network failures
        - Tracks latency histogram and failure counter

        Args:
            payload: Notice body built by build_rate_notice
        """
        attempt = 0
        async with httpx.AsyncClient() as client:
            while attempt < self.max_retries:
                try:
                    with notice_latency_histogram.time():
                        response = await client.post(
                            self.webhook_url,
                            json=payload,
                            timeout=self.timeout,
                        )
                        response.raise_for_status()
                        return  # Success

                except (httpx.HTTPStatusError, httpx.RequestError):
                    attempt += 1
                    notice_failure_counter.inc()

                    if attempt >= self.max_retries:
                        # Final failure after all retries
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
