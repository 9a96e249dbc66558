"""
Middleware components for request logging and error handling.
"""

import time
from typing import Callable, List

from aiohttp import web

from liver.core.exceptions import ApplicationError, ErrorCategory
from liver.utils.logging_config import StructuredLogger, set_request_id, clear_request_id, get_request_id


class RequestLoggingMiddleware:
    """Middleware for logging HTTP requests and responses."""

    def __init__(self):
        self.logger = StructuredLogger("liver.request")

    @web.middleware
    async def __call__(self, request: web.Request, handler: Callable) -> web.StreamResponse:
        request_id = set_request_id()
        started = time.monotonic()

        try:
            response = await handler(request)
            self.logger.log_request_metrics(
                method=request.method,
                path=request.path,
                status_code=response.status,
                started=started,
                request_id=request_id
            )
            response.headers['X-Request-ID'] = request_id
            return response

        except Exception as error:
            self.logger.error(
                f"Request failed: {request.method} {request.path}",
                method=request.method,
                request_path=request.path,
                error=str(error),
                error_type=type(error).__name__,
                request_id=request_id,
                exc_info=True
            )
            raise
        finally:
            clear_request_id()


class ErrorHandlingMiddleware:
    """Middleware for centralized error handling."""

    def __init__(self):
        self.logger = StructuredLogger("liver.error_handler")

    @web.middleware
    async def __call__(self, request: web.Request, handler: Callable) -> web.StreamResponse:
        """Handle exceptions and return structured error responses."""
        try:
            return await handler(request)

        except ApplicationError as error:
            return self._create_error_response(error)

        except web.HTTPException as error:
            if error.status < 400:
                raise
            # Unmatched methods and other router errors keep their status
            app_error = ApplicationError(
                message=error.reason or "HTTP error",
                status_code=error.status
            )
            response = self._create_error_response(app_error)
            if isinstance(error, web.HTTPMethodNotAllowed):
                response.headers['Allow'] = ",".join(sorted(error.allowed_methods))
            return response

        except Exception as error:
            self.logger.error(
                "Unhandled exception occurred",
                error=str(error),
                error_type=type(error).__name__,
                exc_info=True
            )

            app_error = ApplicationError(
                message="An unexpected error occurred",
                category=ErrorCategory.INTERNAL,
                details={"error_id": get_request_id()}
            )
            return self._create_error_response(app_error)

    def _create_error_response(self, error: ApplicationError) -> web.Response:
        """Create a JSON error response."""
        response_data = error.to_dict()

        request_id = get_request_id()
        if request_id:
            response_data["request_id"] = request_id

        return web.json_response(
            response_data,
            status=error.status_code
        )


def create_middleware_stack(enable_request_logging: bool = True) -> List[Callable]:
    """Create the middleware stack in the order aiohttp should apply it."""
    middlewares = []

    if enable_request_logging:
        middlewares.append(RequestLoggingMiddleware().__call__)

    middlewares.append(ErrorHandlingMiddleware().__call__)

    return middlewares
