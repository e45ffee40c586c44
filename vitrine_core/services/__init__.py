from vitrine_core.services.fastapi_scaffolding import (
    ErrorDetail,
    HealthResponse,
    create_service_app,
    error_response,
)

__all__ = [
    "ErrorDetail",
    "HealthResponse",
    "create_service_app",
    "error_response",
]
