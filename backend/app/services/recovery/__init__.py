from app.services.recovery.strategies import (
    VerificationStrategy,
    EmailCodeStrategy,
    PinStrategy,
    TotpStrategy,
    build_strategies,
)
from app.services.recovery.wizard import RecoveryWizard, StepResult

__all__ = [
    "VerificationStrategy",
    "EmailCodeStrategy",
    "PinStrategy",
    "TotpStrategy",
    "build_strategies",
    "RecoveryWizard",
    "StepResult",
]
