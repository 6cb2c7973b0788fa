from grandparent_coach.gateway.app import caller_identity, create_app
from grandparent_coach.gateway.service import CoachingGateway, GatewayReply

__all__ = [
    "CoachingGateway",
    "GatewayReply",
    "caller_identity",
    "create_app",
]
