"""健康检查接口。"""

from sqlalchemy import text
from sqlalchemy.orm import Session

from fastapi import APIRouter, Depends, Request, status

from ca_api.db.session import get_db
from ca_api.utils.response import success
from ca_api.schemas.common import ErrorResponse, HealthStatusData, SuccessResponse

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    summary="存活探针",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
)
def live(request: Request):
    """仅表示进程存活，不校验外部依赖。"""
    return success(request, {"status": "ok"})


@router.get(
    "/ready",
    summary="就绪探针",
    description="通过数据库连通性检测服务是否具备对外提供能力。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={500: {"model": ErrorResponse}},
)
def ready(request: Request, db: Session = Depends(get_db)):
    db.execute(text("select 1"))
    return success(request, {"status": "ready"})
