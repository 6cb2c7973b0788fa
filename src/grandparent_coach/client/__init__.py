from grandparent_coach.client.gateway_client import (
    GatewayClient,
    GatewayError,
    GatewayRateLimitedError,
    GatewayUnavailableError,
)
from grandparent_coach.client.orchestrator import DialogueOrchestrator, Outcome, TurnResult

__all__ = [
    "DialogueOrchestrator",
    "GatewayClient",
    "GatewayError",
    "GatewayRateLimitedError",
    "GatewayUnavailableError",
    "Outcome",
    "TurnResult",
]
