from grandparent_coach.store.continuity import ContextAggregator
from grandparent_coach.store.kv_store import KeyValueStore, utc_now
from grandparent_coach.store.models import Favorite, Message, MessageValidationError, Role, Session
from grandparent_coach.store.session_store import SessionStore
from grandparent_coach.store.usage import UsageCounter

__all__ = [
    "ContextAggregator",
    "Favorite",
    "KeyValueStore",
    "Message",
    "MessageValidationError",
    "Role",
    "Session",
    "SessionStore",
    "UsageCounter",
    "utc_now",
]
