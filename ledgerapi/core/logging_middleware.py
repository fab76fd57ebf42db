import logging
import time
import uuid
from fastapi import Request, Response
from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("ledgerapi")

REQUEST_ID_HEADER = "X-Request-ID"
# 헬스체크는 로드밸런서가 수시로 호출하므로 debug 로만 기록
QUIET_PATHS = ("/health",)


def _level_for(status_code: int, path: str) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    if path in QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 로깅

    봇 또는 클라이언트가 보낸 X-Request-ID 를 그대로 사용하고, 없으면 새로 발급하여
    응답 헤더에 돌려줍니다. 같은 요청의 로그는 [request_id] 로 묶어 추적합니다.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.time()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        method = request.method
        path = request.url.path
        client = request.client.host if request.client else "-"
        prefix = f"[{request_id}] {method} {path} from {client}"

        logger.log(_level_for(200, path), f"{prefix} started")
        try:
            response = await call_next(request)
        except HTTPException as http_exc:
            logger.log(
                _level_for(http_exc.status_code, path),
                f"{prefix} -> {http_exc.status_code}: {http_exc.detail}",
            )
            raise
        except Exception:
            logger.exception(f"{prefix} -> unhandled error")
            raise

        duration_ms = (time.time() - start) * 1000
        logger.log(
            _level_for(response.status_code, path),
            f"{prefix} -> {response.status_code} in {duration_ms:.1f}ms",
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
