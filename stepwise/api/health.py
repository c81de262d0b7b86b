"""Shallow liveness check."""

from fastapi import APIRouter, status

HEALTH_PATH = "/healthz/ping"

router = APIRouter(tags=["Health"])


@router.get(
    HEALTH_PATH,
    status_code=status.HTTP_200_OK,
    summary="Liveness check endpoint",
)
async def ping() -> dict[str, str]:
    """
    Report that the process is serving requests.

    No downstream dependency is checked.
    """
    return {"status": "OK"}
