"""
HTTP transport for the fetch and refresh interfaces.

The config server answers ``GET /{application}/{profile}[/{label}]`` with the
snapshot of the application. A client process answers ``POST /refresh`` with
the list of changed keys. Errors are returned as
``{"error": <exception name>, "detail": <message>}``.
"""

import logging
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config_relay.base import PropertySnapshot
from config_relay.client import ConfigClient
from config_relay.errors import (
    ClientNotReady,
    ConfigRelayError,
    NotFound,
    ParseError,
    RefreshInProgress,
    StoreUnavailable,
)
from config_relay.server import DEFAULT_PROFILE, ConfigServer

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[ConfigRelayError], int] = {
    NotFound: 404,
    RefreshInProgress: 409,
    ClientNotReady: 503,
    StoreUnavailable: 503,
    ParseError: 500,
}

ERROR_TYPES: dict[str, type[ConfigRelayError]] = {
    cls.__name__: cls for cls in ERROR_STATUS
}


def _error_response(exc: ConfigRelayError) -> JSONResponse:
    status = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500
    )
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def _install_error_handler(app: FastAPI) -> None:
    @app.exception_handler(ConfigRelayError)
    async def handle_config_relay_error(request: Request, exc: ConfigRelayError) -> JSONResponse:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return _error_response(exc)


def snapshot_payload(
    application: str, profile: str, label: str | None, snapshot: PropertySnapshot
) -> dict[str, Any]:
    return {
        "name": application,
        "profiles": [profile],
        "label": label,
        "version": snapshot.version,
        "properties": snapshot.to_dict(),
    }


def create_server_app(server: ConfigServer) -> FastAPI:
    app = FastAPI(title="config-relay server")
    _install_error_handler(app)

    # Path operations are sync so FastAPI runs them in its threadpool;
    # reading a store shells out to git or queries a database.
    @app.get("/{application}/{profile}")
    def get_snapshot(application: str, profile: str) -> dict[str, Any]:
        snapshot = server.get_snapshot(application, profile)
        return snapshot_payload(application, profile, None, snapshot)

    @app.get("/{application}/{profile}/{label}")
    def get_labelled_snapshot(application: str, profile: str, label: str) -> dict[str, Any]:
        snapshot = server.get_snapshot(application, profile, label)
        return snapshot_payload(application, profile, label, snapshot)

    return app


def create_client_app(client: ConfigClient) -> FastAPI:
    app = FastAPI(title="config-relay client")
    _install_error_handler(app)

    @app.post("/refresh")
    def refresh() -> list[str]:
        return client.refresh()

    @app.get("/properties")
    def properties() -> dict[str, str | None]:
        return {
            key: bindings[0].resolve()
            for key, bindings in client.bindings().items()
            if bindings
        }

    @app.get("/properties/{key}")
    def property_value(key: str) -> dict[str, str | None]:
        bindings = client.bindings().get(key)
        if not bindings:
            raise NotFound(f"no binding for {key!r}")
        return {"key": key, "value": bindings[0].resolve()}

    return app


class HttpFetcher:
    """Fetches snapshots from a config server over HTTP."""

    def __init__(
        self,
        base_url: str,
        application: str,
        profile: str = DEFAULT_PROFILE,
        label: str | None = None,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.application = application
        self.profile = profile
        self.label = label
        self.client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def _path(self) -> str:
        parts = [self.application, self.profile]
        if self.label is not None:
            parts.append(self.label)
        return "/" + "/".join(parts)

    def __call__(self) -> PropertySnapshot:
        path = self._path()
        try:
            response = self.client.get(path)
        except httpx.TimeoutException as e:
            raise StoreUnavailable(f"timed out fetching {path}") from e
        except httpx.HTTPError as e:
            raise StoreUnavailable(f"cannot fetch {path}: {e}") from e

        if response.status_code != 200:
            raise _decode_error(response)

        try:
            payload = response.json()
            return PropertySnapshot(payload["properties"], version=payload["version"])
        except (ValueError, KeyError, TypeError) as e:
            raise StoreUnavailable(f"malformed snapshot response from {path}: {e!r}") from e

    def close(self) -> None:
        self.client.close()


def _decode_error(response: httpx.Response) -> ConfigRelayError:
    try:
        body = response.json()
        name, detail = body["error"], body["detail"]
    except (ValueError, KeyError, TypeError):
        name, detail = None, response.text

    cls = ERROR_TYPES.get(name)
    if cls is ParseError:
        return ParseError(detail, source="server")
    if cls is not None:
        return cls(detail)
    if response.status_code == 404:
        return NotFound(detail or "not found")
    return StoreUnavailable(f"server answered {response.status_code}: {detail}")
