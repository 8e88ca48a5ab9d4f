"""Provider adapter contract shared by every push vendor.

An adapter takes a batch of per-recipient messages, splits it into as many
vendor calls as the vendor's batch limit requires, and returns one
``SendResult`` per input message in input order. Vendor and transport
failures never propagate out of ``send``: they are reported per message so
the dispatcher can keep its bookkeeping going.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterator, List, Optional, Sequence, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Recipient addressing modes
ADDRESS_TOKENS = "token"  # messages carry device tokens from the registry
ADDRESS_USERS = "user"  # messages carry user ids, the vendor routes to devices

# Error reasons produced by the adapter itself rather than the vendor
ERROR_TRANSPORT = "transport"
ERROR_NOT_CONFIGURED = "not_configured"
ERROR_INVALID_FORMAT = "invalid_token_format"


@dataclass
class PushMessage:
    """One message to one recipient, built at send time and then discarded."""
    to: str
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)
    sound: Optional[str] = "default"
    priority: str = "default"  # default, high
    channel_id: Optional[str] = None  # Android notification channel


@dataclass
class SendResult:
    """Normalized outcome for one message."""
    token: str
    ok: bool
    provider_id: Optional[str] = None
    error_reason: Optional[str] = None
    permanently_invalid: bool = False


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def failed_results(messages: Sequence[PushMessage], reason: str) -> List[SendResult]:
    """Build a non-permanent failure for every message."""
    return [SendResult(token=m.to, ok=False, error_reason=reason) for m in messages]


class PushProvider(ABC):
    """Base class for push vendor adapters."""

    name = "base"
    addressing = ADDRESS_TOKENS
    max_batch_size = 100

    def __init__(
        self,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        """Whether the adapter has what it needs to reach the vendor."""
        return True

    @abstractmethod
    def is_valid_token(self, token: str) -> bool:
        """Check a device token against the vendor's lexical format."""

    def is_valid_recipient(self, address: str) -> bool:
        """Check a message's ``to`` address before sending it."""
        return self.is_valid_token(address)

    def batch_key(self, message: PushMessage) -> Hashable:
        """Messages with different keys are never sent in the same vendor call."""
        return None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    async def aclose(self):
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, batch: Sequence[PushMessage]) -> List[SendResult]:
        """Send a batch and return one result per message in input order."""
        if not batch:
            return []

        if not self.configured:
            logger.debug(f"{self.name} push not configured, skipping {len(batch)} message(s)")
            return failed_results(batch, ERROR_NOT_CONFIGURED)

        results: List[Optional[SendResult]] = [None] * len(batch)

        # Group positions by batch key, malformed addresses fail on their own
        groups: Dict[Hashable, List[int]] = {}
        for position, message in enumerate(batch):
            if not message.to or not self.is_valid_recipient(message.to):
                results[position] = SendResult(
                    token=message.to,
                    ok=False,
                    error_reason=ERROR_INVALID_FORMAT,
                )
                continue
            groups.setdefault(self.batch_key(message), []).append(position)

        for positions in groups.values():
            for chunk_positions in chunked(positions, self.max_batch_size):
                chunk = [batch[i] for i in chunk_positions]
                chunk_results = await self._send_chunk_safely(chunk)
                for position, result in zip(chunk_positions, chunk_results):
                    results[position] = result

        return results

    async def _send_chunk_safely(self, chunk: List[PushMessage]) -> List[SendResult]:
        try:
            chunk_results = await self._send_chunk(chunk)
        except Exception as e:
            logger.error(f"{self.name} push request failed for {len(chunk)} message(s): {e}")
            return failed_results(chunk, ERROR_TRANSPORT)

        if len(chunk_results) < len(chunk):
            logger.warning(
                f"{self.name} returned {len(chunk_results)} result(s) for {len(chunk)} message(s)"
            )
            chunk_results = list(chunk_results) + failed_results(
                chunk[len(chunk_results):], ERROR_TRANSPORT
            )
        return list(chunk_results[:len(chunk)])

    @abstractmethod
    async def _send_chunk(self, chunk: List[PushMessage]) -> List[SendResult]:
        """Make one vendor call for at most ``max_batch_size`` messages.

        May raise on transport errors; ``send`` converts those into
        per-message ``transport`` failures.
        """

    async def check_receipts(self, ticket_ids: Sequence[str]) -> Dict[str, str]:
        """Look up delivery receipts. Vendors without receipts return nothing."""
        return {}
