import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from nacos_vote.backend import BackendClient
from nacos_vote.dependencies import get_backend
from nacos_vote.errors import NetworkError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Proxy"])


@router.api_route("/api/{route:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def forward_to_backend(route: str, request: Request, backend: BackendClient = Depends(get_backend)):
    """Relays /api/* to the voting backend so browsers never need its address."""
    body = None
    if request.method != "GET":
        raw = await request.body()
        if raw:
            try:
                body = await request.json()
            except ValueError:
                return JSONResponse({"error": "Invalid JSON body"}, status_code=400)

    headers = {}
    if "authorization" in request.headers:
        headers["Authorization"] = request.headers["authorization"]

    try:
        status_code, data = await backend.forward(
            request.method, route, json=body, params=dict(request.query_params), headers=headers
        )
    except NetworkError as e:
        logger.error("Proxy %s /api/%s failed: %s", request.method, route, e.message)
        return JSONResponse({"error": "Internal server error"}, status_code=500)
    return JSONResponse(data, status_code=status_code)
