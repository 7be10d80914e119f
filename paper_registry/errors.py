class RegistryError(Exception):
    """注册表错误基类"""
    code = "registry_error"
    http_status = 400

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class AlreadyInitialized(RegistryError):
    code = "already_initialized"
    http_status = 409


class NotInitialized(RegistryError):
    code = "not_initialized"
    http_status = 503


class InvalidPrice(RegistryError):
    code = "invalid_price"


class NotAuthorized(RegistryError):
    code = "not_authorized"
    http_status = 401


class Expired(RegistryError):
    code = "expired"
    http_status = 410


class InvalidInput(RegistryError):
    code = "invalid_input"


class InvalidRecipient(InvalidInput):
    code = "invalid_recipient"
    http_status = 403


class AlreadyPublished(RegistryError):
    code = "already_published"
    http_status = 409


class CapabilityAlreadyHeld(RegistryError):
    code = "capability_already_held"
    http_status = 409


class NotFound(RegistryError):
    code = "not_found"
    http_status = 404


class InsufficientFunds(RegistryError):
    code = "insufficient_funds"
    http_status = 402
