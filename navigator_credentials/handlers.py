"""
Credentials HTTP handlers.

Exposes a ``CredentialStore`` over aiohttp. Authentication is not done here:
an upstream middleware must place the actor in ``request["user_id"]`` and the
active organization in ``request["organization_id"]``.

Security Note:
    Only ``GET /{id}`` returns decrypted data. Error bodies carry the error
    kind and a fixed message, never the exception text of cipher failures.
"""
import logging
from typing import Any

import orjson
from aiohttp import web

from .vault.exceptions import (
    AuthorizationError,
    CredentialNotFound,
    CryptoError,
    InvalidCredentialData,
    SerializationError,
    StorageError,
    VaultError,
)
from .vault.models import CredentialMetadata
from .vault.store import UNSET, CredentialStore

logger = logging.getLogger("navigator.credentials")

STORE_KEY = web.AppKey("credential_store", CredentialStore)
ORGANIZATION_KEY = "organization_id"
USER_KEY = "user_id"


def _dumps(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def _error(status: int, kind: str, message: str) -> web.Response:
    return web.json_response(
        {"error": kind, "message": message}, status=status, dumps=_dumps
    )


def error_response(err: VaultError) -> web.Response:
    """Translate a vault error into an HTTP response."""
    kind = type(err).__name__
    if isinstance(err, AuthorizationError):
        return _error(403, kind, str(err))
    if isinstance(err, CredentialNotFound):
        return _error(404, kind, "Credential not found")
    if isinstance(err, (InvalidCredentialData, SerializationError)):
        return _error(400, kind, str(err))
    if isinstance(err, StorageError):
        return _error(503, kind, "Credential storage unavailable")
    if isinstance(err, CryptoError):
        return _error(500, kind, "Credential could not be processed")
    return _error(500, kind, "Credential vault error")


def _metadata(item: CredentialMetadata) -> dict:
    return item.model_dump(mode="json")


@web.middleware
async def vault_errors(request: web.Request, handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except VaultError as err:
        logger.debug("Credential request failed: %s %s -> %s", request.method, request.path, type(err).__name__)
        return error_response(err)


class CredentialsHandler:
    """CRUD endpoints for the credentials of the request's organization."""

    def __init__(self, store: CredentialStore):
        self._store = store

    @staticmethod
    def _actor(request: web.Request) -> tuple[str, str]:
        organization_id = request.get(ORGANIZATION_KEY)
        user_id = request.get(USER_KEY)
        if not organization_id or not user_id:
            raise web.HTTPUnauthorized(
                text=_dumps({"error": "Unauthorized", "message": "Missing identity"}),
                content_type="application/json",
            )
        return organization_id, user_id

    @staticmethod
    async def _payload(request: web.Request) -> dict:
        try:
            payload = await request.json(loads=orjson.loads)
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise web.HTTPBadRequest(
                text=_dumps({"error": "InvalidCredentialData", "message": "Body must be a JSON object"}),
                content_type="application/json",
            )
        return payload

    async def list(self, request: web.Request) -> web.Response:
        org, user = self._actor(request)
        items = await self._store.list(org, user)
        return web.json_response([_metadata(i) for i in items], dumps=_dumps)

    async def create(self, request: web.Request) -> web.Response:
        org, user = self._actor(request)
        payload = await self._payload(request)
        if "data" not in payload:
            raise InvalidCredentialData("Credential data is required")
        credential_id = await self._store.create(
            org,
            user,
            payload.get("name"),
            payload.get("credential_type"),
            payload["data"],
        )
        return web.json_response({"id": credential_id}, status=201, dumps=_dumps)

    async def get(self, request: web.Request) -> web.Response:
        org, user = self._actor(request)
        credential = await self._store.get(org, user, request.match_info["id"])
        return web.json_response(credential.model_dump(mode="json"), dumps=_dumps)

    async def update(self, request: web.Request) -> web.Response:
        org, user = self._actor(request)
        payload = await self._payload(request)
        # a null field keeps the stored value
        name = payload.get("name")
        data = payload.get("data")
        await self._store.update(
            org,
            user,
            request.match_info["id"],
            name=UNSET if name is None else name,
            data=UNSET if data is None else data,
        )
        return web.json_response({"id": request.match_info["id"]}, dumps=_dumps)

    async def delete(self, request: web.Request) -> web.Response:
        org, user = self._actor(request)
        await self._store.delete(org, user, request.match_info["id"])
        return web.Response(status=204)


def setup_routes(
    app: web.Application,
    store: CredentialStore,
    prefix: str = "/api/credentials",
) -> CredentialsHandler:
    """Mount the credentials endpoints and the vault error middleware."""
    handler = CredentialsHandler(store)
    app[STORE_KEY] = store
    app.middlewares.append(vault_errors)
    app.router.add_get(prefix, handler.list)
    app.router.add_post(prefix, handler.create)
    app.router.add_get(prefix + "/{id}", handler.get)
    app.router.add_put(prefix + "/{id}", handler.update)
    app.router.add_delete(prefix + "/{id}", handler.delete)
    return handler
