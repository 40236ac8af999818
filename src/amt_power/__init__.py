"""AMT Power - Intel AMT power control over WS-Management."""

__version__ = "0.1.0"

from .client import AMTClient
from .config import AMTConfig
from .errors import (
    AMTError,
    AuthChallengeError,
    ConnectionExhaustedError,
    ProtocolError,
    ResolutionError,
)
from .power import PowerController, PowerState

__all__ = [
    "AMTClient",
    "AMTConfig",
    "AMTError",
    "AuthChallengeError",
    "ConnectionExhaustedError",
    "PowerController",
    "PowerState",
    "ProtocolError",
    "ResolutionError",
]
