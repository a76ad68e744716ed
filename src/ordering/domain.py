"""Ordering bounded context — order intake, persistence, and status tracking.

Orders and their items are stored through Protean repositories (CQRS, not
event sourced). Status is advanced by the fulfillment coordinator as device
feedback arrives.
"""

from protean.domain import Domain

from ordering.utils.logging import configure_logging

configure_logging()

ordering = Domain(name="ordering")
