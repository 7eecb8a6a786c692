from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import time
import uuid
from typing import Callable, Optional
from app.utils.ip_address_finder import get_client_ip, get_user_agent
from app.utils.logging_config import (
    get_logger,
    LogContext,
    log_api_access,
    log_security_event,
    log_performance_metric
)
from app.utils.security import TokenManager

logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to handle request/response logging and context management
    """

    def __init__(self, app: FastAPI, log_requests: bool = True, log_responses: bool = True):
        super().__init__(app)
        self.log_requests = log_requests
        self.log_responses = log_responses

    @staticmethod
    def token_subject(request: Request) -> Optional[str]:
        auth_header = request.headers.get("authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return None
        try:
            return TokenManager.decode_token(auth_header.split(" ", 1)[1]).get("sub")
        except ValueError:
            return None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        client_ip = get_client_ip(request)
        user_agent = get_user_agent(request)
        user_id = self.token_subject(request)
        path = str(request.url.path)

        with LogContext(req_id=request_id, usr_id=user_id):
            start_time = time.time()

            if self.log_requests:
                logger.info(
                    f"Incoming request: {request.method} {path}",
                    extra={
                        'extra_fields': {
                            'http_method': request.method,
                            'path': path,
                            'query_params': dict(request.query_params),
                            'client_ip': client_ip,
                            'user_agent': user_agent,
                            'action': 'request_received'
                        }
                    }
                )

            try:
                response = await call_next(request)
            except Exception as e:
                response_time = time.time() - start_time
                logger.error(
                    f"Request failed: {request.method} {path}",
                    extra={
                        'extra_fields': {
                            'http_method': request.method,
                            'path': path,
                            'error_type': type(e).__name__,
                            'error_message': str(e),
                            'response_time_seconds': round(response_time, 4),
                            'client_ip': client_ip,
                            'action': 'request_failed'
                        }
                    },
                    exc_info=True
                )
                raise

            status_code = response.status_code
            response_time = time.time() - start_time
            response.headers["X-Request-ID"] = request_id

            if self.log_responses:
                logger.info(
                    f"Request completed: {request.method} {path} - {status_code}",
                    extra={
                        'extra_fields': {
                            'http_method': request.method,
                            'path': path,
                            'status_code': status_code,
                            'response_time_seconds': round(response_time, 4),
                            'client_ip': client_ip,
                            'action': 'request_completed'
                        }
                    }
                )

            log_api_access(
                method=request.method,
                path=path,
                status_code=status_code,
                response_time=response_time,
                user_id=user_id,
                ip_address=client_ip
            )

            if response_time > 1.0:
                log_performance_metric(
                    operation=f"{request.method} {path}",
                    duration_seconds=response_time,
                    additional_metrics={'status_code': status_code}
                )

            if status_code in (401, 403):
                log_security_event(
                    event_type="unauthorized_access_attempt",
                    user_id=user_id,
                    ip_address=client_ip,
                    user_agent=user_agent,
                    details={'path': path, 'method': request.method}
                )

            return response
