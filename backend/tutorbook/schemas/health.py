from ._strict_base import StrictModel

"""Response models for health endpoints."""


class HealthResponse(StrictModel):
    status: str
    service: str
    environment: str
    admin_timezone: str
    database: bool
    timestamp: str
