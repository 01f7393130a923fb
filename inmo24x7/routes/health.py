from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
def healthcheck() -> dict:
    return {"ok": True, "service": "inmo24x7-mvp"}
