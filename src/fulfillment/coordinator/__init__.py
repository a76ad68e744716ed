"""Fulfillment coordination — process-wide coordinator instance."""

import os

_coordinator_instance = None


def get_coordinator():
    """Return the process-wide fulfillment coordinator (singleton).

    FULFILLMENT_IDLE_TIMEOUT (seconds) and FULFILLMENT_MAX_TRACKED bound how
    long and how many orders are tracked at once.
    """
    global _coordinator_instance
    if _coordinator_instance is None:
        from fulfillment.coordinator.coordinator import (
            DEFAULT_IDLE_TIMEOUT,
            DEFAULT_MAX_TRACKED,
            FulfillmentCoordinator,
        )

        _coordinator_instance = FulfillmentCoordinator(
            idle_timeout=float(os.environ.get("FULFILLMENT_IDLE_TIMEOUT", DEFAULT_IDLE_TIMEOUT)),
            max_tracked=int(os.environ.get("FULFILLMENT_MAX_TRACKED", DEFAULT_MAX_TRACKED)),
        )
    return _coordinator_instance


def reset_coordinator():
    """Reset the coordinator singleton (useful for testing)."""
    global _coordinator_instance
    _coordinator_instance = None
