"""
AddressValidation gate -- destination support check around an unreliable lookup.

Responsibility:
    Decides whether the destination is a supported jurisdiction.  The
    JurisdictionLookup is treated as a remote service: it may raise or block.

Resolution order:
    1. Country check (local, uncached).
    2. Cache hit on ``state:city`` -> cached verdict, no lookup.
    3. Lookup on a worker thread, bounded by ``timeout_seconds``.  Both
       positive and negative verdicts are cached.
    4. Lookup failure or timeout -> fallback policy:
         REJECT       fail with DEPENDENCY
         LOCAL_RULES  re-check against ``fallback_lookup``; never cached

Invariants enforced:
    - The cache is the only mutable shared state; it is lock-guarded.
    - Fallback verdicts are never cached, so the lookup is retried on the
      next request for the same destination.

Limits:
    A timed-out lookup cannot be interrupted; it keeps its worker thread
    until the JurisdictionLookup returns.  Once ``max_workers`` lookups are
    hung, later lookups queue behind them and time out as well, so the
    pool size bounds how many stuck calls are tolerated.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any

from compliance_kernel.domain.dtos import ErrorType, FallbackPolicy, GateResult
from compliance_kernel.domain.sources import JurisdictionLookup
from compliance_kernel.exceptions import (
    LookupTimeoutError,
    SourceError,
    SourceUnavailableError,
)
from compliance_kernel.logging_config import get_logger, submit_with_context
from compliance_services.gates.base import BaseGate, GateRequest

logger = get_logger("services.gates.address_validation")

ADDRESS_VALIDATION = "AddressValidation"

DEFAULT_TIMEOUT_SECONDS = 5.0

_LOOKUP_SOURCE = "jurisdiction_lookup"


class AddressValidationCache:
    """Lock-guarded ``state:city`` -> verdict map."""

    def __init__(self) -> None:
        self._entries: dict[str, bool] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bool | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, is_valid: bool) -> None:
        with self._lock:
            self._entries[key] = is_valid

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class AddressValidationGate(BaseGate):
    """
    Validates the destination against supported jurisdictions.

    Contract:
        Fails with VALIDATION for an unsupported destination and with
        DEPENDENCY when the lookup is unavailable under the REJECT policy.

    Non-goals:
        - No retry within one execution; the next request retries.
        - No circuit breaker shared across processes.
    """

    name = ADDRESS_VALIDATION

    def __init__(
        self,
        lookup: JurisdictionLookup,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        fallback_policy: FallbackPolicy = FallbackPolicy.REJECT,
        fallback_lookup: JurisdictionLookup | None = None,
        supported_countries: tuple[str, ...] = ("US",),
        cache: AddressValidationCache | None = None,
        executor: Executor | None = None,
        max_workers: int = 4,
    ):
        fallback_policy = FallbackPolicy(fallback_policy)
        if fallback_policy == FallbackPolicy.LOCAL_RULES and fallback_lookup is None:
            raise ValueError("local_rules fallback requires a fallback_lookup")
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive (got {timeout_seconds})")
        if executor is None and max_workers <= 0:
            raise ValueError(f"max_workers must be positive (got {max_workers})")

        self._lookup = lookup
        self._timeout = timeout_seconds
        self._policy = fallback_policy
        self._fallback_lookup = fallback_lookup
        self._countries = frozenset(supported_countries)
        self.cache = cache if cache is not None else AddressValidationCache()

        self._max_workers = max_workers if executor is None else None
        self._owns_executor = executor is None
        self._executor = executor if executor is not None else ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="address-lookup",
        )

    @property
    def fallback_policy(self) -> FallbackPolicy:
        return self._policy

    @property
    def max_workers(self) -> int | None:
        """Size of the owned lookup pool; None for an injected executor."""
        return self._max_workers

    def execute(self, request: GateRequest) -> GateResult:
        destination = request.transaction.destination
        country, state, city = destination.country, destination.state, destination.city

        if country not in self._countries:
            return self._unsupported(country, state, city, source="country_check")

        cache_key = destination.cache_key
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("address_cache_hit", extra={
                "cache_key": cache_key, "is_valid": cached,
            })
            if cached:
                return self._pass("Valid address (from cache)", source="cache")
            return self._unsupported(country, state, city, source="cache")

        try:
            is_valid = self._lookup_with_timeout(state, city)
        except SourceError as e:
            return self._handle_lookup_failure(country, state, city, e)

        self.cache.put(cache_key, is_valid)
        if is_valid:
            return self._pass(f"Valid {country} address", source="remote")
        return self._unsupported(country, state, city, source="remote")

    def close(self) -> None:
        """Shut down the worker pool if this gate created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _lookup_with_timeout(self, state: str, city: str) -> bool:
        """
        Run the lookup on the worker pool.

        Raises:
            LookupTimeoutError: If no answer within the timeout.
            SourceUnavailableError: If the lookup raised.
        """
        future = submit_with_context(self._executor, _is_supported, self._lookup, state, city)
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeoutError as e:
            # Only drops a queued call; a running lookup holds its worker.
            future.cancel()
            logger.warning("address_lookup_timeout", extra={
                "state": state, "city": city, "timeout_seconds": self._timeout,
            })
            raise LookupTimeoutError(_LOOKUP_SOURCE, self._timeout) from e
        except SourceError:
            logger.warning("address_lookup_failed", extra={
                "state": state, "city": city,
            }, exc_info=True)
            raise
        except Exception as e:
            logger.warning("address_lookup_failed", extra={
                "state": state, "city": city,
            }, exc_info=True)
            raise SourceUnavailableError(_LOOKUP_SOURCE, str(e)) from e

    def _handle_lookup_failure(
        self, country: str, state: str, city: str, error: SourceError,
    ) -> GateResult:
        if self._policy == FallbackPolicy.LOCAL_RULES:
            is_valid = _is_supported(self._fallback_lookup, state, city)
            logger.info("address_fallback_applied", extra={
                "state": state,
                "city": city,
                "is_valid": is_valid,
                "error_code": error.code,
            })
            if is_valid:
                return self._pass(
                    f"Valid {country} address (fallback rules)",
                    source="fallback",
                    error=str(error),
                )
            return self._unsupported(country, state, city, source="fallback")

        reason = error.reason if isinstance(error, SourceUnavailableError) else str(error)
        return self._fail(
            f"Address validation service unavailable: {reason}. "
            f"Cannot validate destination: {city}, {state}",
            ErrorType.DEPENDENCY,
            country=country,
            state=state,
            city=city,
            error=reason,
            error_code=error.code,
            source="dependency_failure",
        )

    def _unsupported(self, country: str, state: str, city: str, **metadata: Any) -> GateResult:
        return self._fail(
            f"Unsupported destination: {city}, {state}",
            ErrorType.VALIDATION,
            country=country,
            state=state,
            city=city,
            **metadata,
        )


def _is_supported(lookup: JurisdictionLookup, state: str, city: str) -> bool:
    return lookup.is_state_supported(state) and lookup.is_city_supported(state, city)
