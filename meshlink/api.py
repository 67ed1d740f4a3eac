"""FastAPI application exposing mesh connections over HTTP."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Query

from . import config
from .connection import Connection
from .errors import ConnectionNotFoundError, MeshLinkError
from .messages import (
    AllowIPRequest,
    ConnectionDeleteRequest,
    ConnectionListRequest,
    ConnectionListResponse,
    ConnectionListStubModel,
    ConnectionModel,
    ConnectionSpecificRequest,
    ConnectionUpsertRequest,
    QueryOptions,
    Response,
    SingleConnectionResponse,
)
from .store import ConnectionStore

logger = logging.getLogger(__name__)

app = FastAPI(title="MeshLink Connections", version="0.1.0")

_store = ConnectionStore()


def _http_error(exc: MeshLinkError) -> HTTPException:
    if isinstance(exc, ConnectionNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _single(connection: Connection, index: int) -> SingleConnectionResponse:
    return SingleConnectionResponse(
        connection=ConnectionModel.from_domain(connection),
        meta=Response(last_index=index),
    )


def get_connection(request: ConnectionSpecificRequest) -> SingleConnectionResponse:
    try:
        connection = _store.get(request.connection_id)
    except MeshLinkError as exc:
        raise _http_error(exc) from exc
    return _single(connection, _store.index)


def list_connections(request: ConnectionListRequest) -> ConnectionListResponse:
    """Filter, then page through stubs in id order starting at ``next_token``."""

    options = request.query_options
    stubs = _store.list(
        interface_id=request.interface_id,
        node_id=request.node_id,
        network_id=request.network_id,
        prefix=options.prefix,
    )
    if options.next_token:
        stubs = [stub for stub in stubs if stub.id >= options.next_token]
    next_token = None
    if options.per_page is not None and len(stubs) > options.per_page:
        next_token = stubs[options.per_page].id
        stubs = stubs[: options.per_page]
    items = [ConnectionListStubModel.from_domain(stub) for stub in stubs]
    return ConnectionListResponse(items=items, next_token=next_token, meta=Response(last_index=_store.index))


@app.post("/connections", response_model=SingleConnectionResponse)
def upsert_connection(payload: ConnectionUpsertRequest) -> SingleConnectionResponse:
    """Create a connection, or replace the one stored under the same id."""

    try:
        connection = payload.connection.to_domain()
        if not connection.id:
            fresh = Connection.new(connection.network_id)
            connection.id = fresh.id
            connection.created_at = fresh.created_at
        if connection.persistent_keepalive is None and config.DEFAULT_KEEPALIVE is not None:
            connection.persistent_keepalive = config.DEFAULT_KEEPALIVE
        stored, index = _store.upsert(connection)
    except MeshLinkError as exc:
        raise _http_error(exc) from exc
    return _single(stored, index)


@app.get("/connections", response_model=ConnectionListResponse)
def list_connections_endpoint(
    interface_id: str | None = None,
    node_id: str | None = None,
    network_id: str | None = None,
    prefix: str | None = None,
    per_page: int | None = Query(default=None, gt=0),
    next_token: str | None = None,
) -> ConnectionListResponse:
    """List connection stubs, optionally filtered by interface, node or network."""

    request = ConnectionListRequest(
        interface_id=interface_id,
        node_id=node_id,
        network_id=network_id,
        query_options=QueryOptions(prefix=prefix, per_page=per_page, next_token=next_token),
    )
    return list_connections(request)


@app.get("/connections/{connection_id}", response_model=SingleConnectionResponse)
def get_connection_endpoint(connection_id: str) -> SingleConnectionResponse:
    return get_connection(ConnectionSpecificRequest(connection_id=connection_id))


@app.patch("/connections/{connection_id}", response_model=SingleConnectionResponse)
def patch_connection(connection_id: str, payload: ConnectionModel) -> SingleConnectionResponse:
    """Merge the fields present in the body into the stored connection."""

    try:
        connection, index = _store.patch(connection_id, payload.to_patch())
    except MeshLinkError as exc:
        raise _http_error(exc) from exc
    return _single(connection, index)


@app.post("/connections/{connection_id}/allow-ip", response_model=SingleConnectionResponse)
def allow_ip(connection_id: str, payload: AllowIPRequest) -> SingleConnectionResponse:
    try:
        connection, index = _store.allow_ip(connection_id, payload.ip)
    except MeshLinkError as exc:
        raise _http_error(exc) from exc
    return _single(connection, index)


@app.post("/connections/delete", response_model=Response)
def delete_connections(payload: ConnectionDeleteRequest) -> Response:
    try:
        index = _store.delete(payload.connection_ids)
    except MeshLinkError as exc:
        raise _http_error(exc) from exc
    return Response(last_index=index)


def reset_state() -> None:
    """Reset the in-memory state. Intended for tests."""

    _store.reset()


def main() -> None:
    import uvicorn

    config.configure_logging()
    logger.info("[api] listening on %s:%d", config.HOST, config.PORT)
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


__all__ = ["app", "reset_state", "main"]
