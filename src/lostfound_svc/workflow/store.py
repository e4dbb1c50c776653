"""Request store - thread-safe, versioned in-memory store for work requests."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Callable

from ..errors import AlreadyAdvancedError, NotFoundError
from .types import RequestStatus, WorkRequest

logger = logging.getLogger(__name__)


class RequestStore:
    """
    Thread-safe in-memory store of work requests.

    Every read hands out a deep copy and every write is a compare-and-swap on
    WorkRequest.version, so a caller that lost a race finds out instead of
    overwriting the winner. Requests are never deleted.
    """

    def __init__(self) -> None:
        self._requests: dict[str, WorkRequest] = {}
        self._lock = threading.RLock()
        self._counter = 0
        self._sequence = 0

    def _next_id(self) -> str:
        """Generate the next request ID."""
        self._counter += 1
        return f"WR-{self._counter:06d}"

    def insert(self, request: WorkRequest) -> WorkRequest:
        """Store a new request, assigning its id, sequence and first version."""
        with self._lock:
            if not request.request_id:
                request.request_id = self._next_id()
            if request.request_id in self._requests:
                raise ValueError(f"Request '{request.request_id}' already exists")
            self._sequence += 1
            request.sequence = self._sequence
            request.version = 1
            self._requests[request.request_id] = copy.deepcopy(request)
            return copy.deepcopy(request)

    def load(self, request: WorkRequest) -> None:
        """
        Restore a persisted request as-is (id, version and sequence kept).

        Keeps id generation ahead of restored ids.
        """
        with self._lock:
            self._requests[request.request_id] = copy.deepcopy(request)
            self._sequence = max(self._sequence, request.sequence)
            prefix, _, number = request.request_id.rpartition("-")
            if prefix == "WR" and number.isdigit():
                self._counter = max(self._counter, int(number))

    def replace_all(self, requests: list[WorkRequest]) -> int:
        """Swap the whole contents for restored requests in one step."""
        with self._lock:
            self._requests.clear()
            self._counter = 0
            self._sequence = 0
            for request in requests:
                self.load(request)
            return len(self._requests)

    def get(self, request_id: str) -> WorkRequest | None:
        """Get a copy of a request by ID."""
        with self._lock:
            request = self._requests.get(request_id)
            return copy.deepcopy(request) if request is not None else None

    def compare_and_swap(self, request: WorkRequest, expected_version: int) -> WorkRequest:
        """
        Commit an edited copy if nobody else committed since it was read.

        Args:
            request: The edited copy
            expected_version: The version the copy was read at

        Returns:
            A copy of the committed request, carrying its new version

        Raises:
            NotFoundError: If the request is unknown
            AlreadyAdvancedError: If the stored version moved on
        """
        with self._lock:
            current = self._requests.get(request.request_id)
            if current is None:
                raise NotFoundError(f"Request not found: {request.request_id}")
            if current.version != expected_version:
                raise AlreadyAdvancedError(
                    f"Request {request.request_id} was modified concurrently "
                    f"(expected version {expected_version}, found {current.version})",
                    expected_version=expected_version,
                    actual_version=current.version,
                )
            committed = copy.deepcopy(request)
            committed.version = current.version + 1
            self._requests[committed.request_id] = committed
            return copy.deepcopy(committed)

    def find(self, predicate: Callable[[WorkRequest], bool]) -> list[WorkRequest]:
        """Get copies of all requests matching a predicate."""
        with self._lock:
            return [copy.deepcopy(r) for r in self._requests.values() if predicate(r)]

    def all_requests(self) -> list[WorkRequest]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._requests.values()]

    def count_by_status(self) -> dict[str, int]:
        """Get counts of requests grouped by status."""
        with self._lock:
            counts: dict[str, int] = {s.value: 0 for s in RequestStatus}
            for req in self._requests.values():
                counts[req.status.value] += 1
            counts["total"] = len(self._requests)
            return counts

    def clear(self) -> None:
        """Clear all requests."""
        with self._lock:
            self._requests.clear()
            self._counter = 0
            self._sequence = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)
