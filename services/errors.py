class NotFound(Exception): ...
class BusinessRuleError(Exception): ...
class AttributionError(Exception): ...
class GatewayAuthError(Exception): ...


class RefundError(Exception):
    def __init__(self, message: str, status_code: int = 400, details: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details
