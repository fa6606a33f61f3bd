from core.settings import Settings
from payments.gateway import PaymentGateway
from payments.square_client import SquareHttpClient

# Settings and gateway singletons
_settings = None
_gateway = None


def get_settings() -> Settings:
    """Dependency that provides application settings."""
    assert (
        _settings is not None
    ), "Settings not initialized. Make sure startup() was called."
    return _settings


def get_gateway() -> PaymentGateway:
    """Dependency that provides the Square gateway adapter."""
    assert (
        _gateway is not None
    ), "Gateway not initialized. Make sure startup() was called."
    return _gateway


def init_settings():
    """Initialize settings and gateway singletons."""
    global _settings, _gateway
    _settings = Settings()
    _gateway = PaymentGateway(SquareHttpClient(_settings), _settings)


def clear_settings():
    """Clear settings and gateway singletons."""
    global _settings, _gateway
    if _gateway is not None:
        _gateway.client.session.close()
    _settings = None
    _gateway = None
