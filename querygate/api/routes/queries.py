"""
One route per pull query, mounted at the declared endpoint (GET and POST).

dispatch() is blocking; it runs in a worker thread so concurrent requests
overlap and only the pool's capacity queues them. Client faults answer
``400 {"message": ...}`` here; server faults propagate to the app-wide
exception handler.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from querygate.api.deps import require_bearer
from querygate.api.params import parse_params
from querygate.core.errors import ClientFault
from querygate.core.serialization import rows_payload
from querygate.engines import EndpointDispatcher

_log = logging.getLogger(__name__)


def _make_handler(dispatcher: EndpointDispatcher) -> Callable[[Request], Awaitable[JSONResponse]]:
    async def handler(request: Request) -> JSONResponse:
        params = await parse_params(request)
        try:
            result = await asyncio.to_thread(dispatcher.dispatch, params)
        except ClientFault as e:
            _log.warning("%s rejected: %s", dispatcher.descriptor.label, e)
            return JSONResponse(status_code=e.status_code, content={"message": str(e)})
        return JSONResponse(content=rows_payload(result["rows"]))

    return handler


def build_query_router(dispatchers: list[EndpointDispatcher]) -> APIRouter:
    router = APIRouter(tags=["queries"], dependencies=[Depends(require_bearer)])
    for dispatcher in dispatchers:
        d = dispatcher.descriptor
        router.add_api_route(
            d.endpoint or "/",
            _make_handler(dispatcher),
            methods=["GET", "POST"],
            name=d.name or d.endpoint,
            summary=d.label,
        )
        _log.info("%s query end point generated: %s", d.kind.value.upper(), d.endpoint)
    return router
