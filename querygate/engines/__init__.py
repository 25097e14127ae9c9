"""
Engines: SQL pipeline, endpoint dispatcher (pull) and interval publisher (push).
"""

from querygate.engines.dispatcher import EndpointDispatcher
from querygate.engines.pipeline import QueryPipeline
from querygate.engines.publisher import IntervalPublisher, PublisherGroup

__all__ = [
    "EndpointDispatcher",
    "IntervalPublisher",
    "PublisherGroup",
    "QueryPipeline",
]
