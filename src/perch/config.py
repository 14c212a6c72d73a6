"""Binding configuration.

BindingConfig is a frozen dataclass — immutable after creation,
IDE-autocompletable, no string-key dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BindingConfig:
    """Dispatcher and host configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = BindingConfig(offload_sync_executors=True, debug=True)
    """

    # Verbs whose messages are read from a request body
    body_methods: frozenset[str] = frozenset({"POST", "PUT", "PATCH"})

    # Verbs whose messages are bound from route + query values only
    parameter_methods: frozenset[str] = frozenset({"GET", "HEAD", "DELETE"})

    # Run sync executors in an anyio worker thread instead of the event loop
    offload_sync_executors: bool = False

    # Suffix appended to a message type's name when naming its projection type
    projection_suffix: str = "RouteParameters"

    # Wire formats
    json_content_type: str = "application/json; charset=utf-8"
    problem_content_type: str = "application/problem+json"

    # Limits
    max_body_size: int = 16 * 1024 * 1024  # 16 MB

    # Include exception text in 500 responses from the host adapter
    debug: bool = False
