"""HTTP trigger blueprint: path-addressed GET/PUT/DELETE and a health check."""

import functools
import json
import logging
from collections.abc import Callable
from urllib.parse import quote

import azure.functions as func

from drive_path import __version__
from drive_path.config import load_config
from drive_path.drive.auth import DriveAuthError
from drive_path.drive.models import DriveResponse
from drive_path.operations.handler import PathOperations, path_operations_from_config

logger = logging.getLogger(__name__)

bp = func.Blueprint()

FULL_LISTING_HEADER = "full"


@functools.lru_cache(maxsize=1)
def get_operations() -> PathOperations:
    """Build the operations once per worker process.

    The credential session and resolution cache live on the returned
    instance and are shared by every request the process serves.
    """
    return path_operations_from_config(load_config())


def to_http_response(response: DriveResponse) -> func.HttpResponse:
    return func.HttpResponse(
        body=response.body,
        status_code=response.status_code,
        headers=dict(response.headers),
    )


def _error(status_code: int, message: str) -> func.HttpResponse:
    body = json.dumps({"status": "error", "message": message})
    return func.HttpResponse(body, status_code=status_code, mimetype="application/json")


@bp.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint. Returns service status and version."""
    logger.info("[health_check] health check requested")
    body = json.dumps({"status": "ok", "version": __version__})
    return func.HttpResponse(body, status_code=200, mimetype="application/json")


def dispatch(
    req: func.HttpRequest,
    get_ops: Callable[[], PathOperations] = get_operations,
) -> func.HttpResponse:
    """Route a request on any path to the matching path operation.

    GET downloads a file or lists a folder (``full: true`` header adds
    thumbnails), PUT uploads the request body, DELETE removes the object.
    """
    # Route values arrive decoded; the resolver expects URL-encoded segments
    path = quote(req.route_params.get("path") or "")
    method = req.method.upper()
    logger.info("[dispatch] request received; method:%s;path:%s", method, path)

    try:
        operations = get_ops()
        if method == "GET":
            full = (req.headers.get(FULL_LISTING_HEADER) or "").lower() == "true"
            response = operations.fetch(path, req.url, full=full)
        elif method == "PUT":
            response = operations.upload(path, req.headers.get("Content-Type"), req.get_body())
        elif method == "DELETE":
            response = operations.delete(path, req.get_body())
        else:
            return _error(405, "Method not allowed")
        logger.info(
            "[dispatch] request complete; method:%s;path:%s;status:%d",
            method,
            path,
            response.status_code,
        )
        return to_http_response(response)

    except DriveAuthError:
        logger.error("[dispatch] drive authentication failed", exc_info=True)
        return _error(502, "Upstream authentication failed")

    except Exception:
        logger.error("[dispatch] request failed", exc_info=True)
        return _error(500, "Internal server error")


@bp.route(
    route="{*path}",
    methods=["GET", "PUT", "DELETE"],
    auth_level=func.AuthLevel.ANONYMOUS,
)
def path_request(req: func.HttpRequest) -> func.HttpResponse:
    """Catch-all endpoint for path-addressed drive operations."""
    return dispatch(req)
