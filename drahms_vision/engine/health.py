"""
Provider health tracking.

Per-provider circuit breaker fed by dispatcher outcomes:

    CLOSED --(failure_threshold consecutive failures)--> OPEN
    OPEN --(recovery_timeout elapsed)--> HALF_OPEN
    HALF_OPEN --success--> CLOSED
    HALF_OPEN --failure--> OPEN

In the CLOSED state a failure more than monitoring_period after the previous
one starts a new count, so sparse failures never open the circuit.

Providers with an OPEN circuit are skipped by the failover policy but stay
in the registry. State lives here, never on the Provider objects.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Any, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitStatus:
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    opened_at: Optional[float] = None
    last_failure_at: Optional[float] = None
    total_failures: int = 0
    total_successes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "consecutive_failures": self.consecutive_failures,
            "total_failures": self.total_failures,
            "total_successes": self.total_successes,
        }


class ProviderHealthTracker:
    """
    Tracks consecutive failures per provider.

    All mutation happens synchronously on the event loop thread, so updates
    need no lock.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        recovery_timeout: float = 60.0,
        monitoring_period: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            failure_threshold: Consecutive failures before the circuit opens
            recovery_timeout: Seconds before an open circuit allows a probe
            monitoring_period: Seconds after which an old failure streak is forgotten
            clock: Monotonic time source (injectable for tests)
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.monitoring_period = monitoring_period
        self._clock = clock
        self._circuits: Dict[str, CircuitStatus] = {}

    def _circuit(self, provider_id: str) -> CircuitStatus:
        circuit = self._circuits.get(provider_id)
        if circuit is None:
            circuit = CircuitStatus()
            self._circuits[provider_id] = circuit
        return circuit

    def is_available(self, provider_id: str) -> bool:
        """Whether the provider may be called now."""
        circuit = self._circuits.get(provider_id)
        if circuit is None or circuit.state == CircuitState.CLOSED:
            return True
        if circuit.state == CircuitState.OPEN:
            if self._clock() - (circuit.opened_at or 0.0) >= self.recovery_timeout:
                circuit.state = CircuitState.HALF_OPEN
                logger.info(f"Circuit HALF_OPEN for provider {provider_id}")
                return True
            return False
        return True

    def record_success(self, provider_id: str) -> None:
        circuit = self._circuit(provider_id)
        circuit.total_successes += 1
        circuit.consecutive_failures = 0
        if circuit.state != CircuitState.CLOSED:
            logger.info(f"Circuit CLOSED for provider {provider_id} (recovered)")
        circuit.state = CircuitState.CLOSED
        circuit.opened_at = None

    def record_failure(self, provider_id: str, detail: Optional[str] = None) -> None:
        circuit = self._circuit(provider_id)
        now = self._clock()
        circuit.total_failures += 1
        if (
            circuit.state == CircuitState.CLOSED and
            circuit.last_failure_at is not None and
            now - circuit.last_failure_at > self.monitoring_period
        ):
            circuit.consecutive_failures = 0
        circuit.consecutive_failures += 1
        circuit.last_failure_at = now

        if circuit.state == CircuitState.HALF_OPEN:
            circuit.state = CircuitState.OPEN
            circuit.opened_at = now
            logger.warning(f"Circuit re-opened for provider {provider_id}: {detail}")
        elif (
            circuit.state == CircuitState.CLOSED and
            circuit.consecutive_failures >= self.failure_threshold
        ):
            circuit.state = CircuitState.OPEN
            circuit.opened_at = now
            logger.error(
                f"Circuit OPEN for provider {provider_id} after "
                f"{circuit.consecutive_failures} consecutive failures: {detail}"
            )

    def state(self, provider_id: str) -> CircuitState:
        circuit = self._circuits.get(provider_id)
        return circuit.state if circuit else CircuitState.CLOSED

    def reset(self, provider_id: Optional[str] = None) -> None:
        """Reset one circuit, or all of them."""
        if provider_id is None:
            self._circuits.clear()
            logger.info("All provider circuits reset")
        else:
            self._circuits.pop(provider_id, None)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {pid: c.to_dict() for pid, c in sorted(self._circuits.items())}
