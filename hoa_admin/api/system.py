from typing import Dict

from fastapi import APIRouter

from ..core.version import get_version_info

router = APIRouter()


@router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@router.get("/version")
def version() -> Dict[str, str]:
    return get_version_info()
