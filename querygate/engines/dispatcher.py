"""
Endpoint dispatcher for pull queries.

One request runs Received -> Templated/Resolved -> (InjectionChecked) ->
Bound -> Executed -> Normalized, strictly in that order. ``ClientFault``
errors (incomplete descriptor, injection rejection) are raised before any
connection is checked out; the HTTP layer turns them into 400 responses.
Server faults propagate to the application's generic error handler.
"""

import logging
from collections.abc import Mapping
from typing import Any

from querygate.core.errors import ConfigurationError
from querygate.engines.pipeline import QueryPipeline
from querygate.models import ExposureEnum, QueryDescriptor

_log = logging.getLogger(__name__)


class EndpointDispatcher:
    def __init__(self, descriptor: QueryDescriptor, pipeline: QueryPipeline) -> None:
        if descriptor.exposure != ExposureEnum.PULL:
            raise ConfigurationError(f"{descriptor.label} is not a pull query")
        self.descriptor = descriptor
        self.pipeline = pipeline

    def dispatch(self, params: Mapping[str, Any]) -> dict[str, Any]:
        """Run the query for one request. Returns ``{"rows": [...]}``."""
        rows = self.pipeline.run(self.descriptor, params)
        _log.debug("%s returned %d row(s)", self.descriptor.label, len(rows))
        return {"rows": rows}
