"""Session domain services: store, state machine commands and broadcast.

Socket handlers resolve a session through the store, apply one command
while holding the session lock and publish the resulting snapshot through
the room channel. Nothing in here knows about Flask request context.
"""

from .commands import CommandRejected  # noqa: F401
from .store import SessionStore  # noqa: F401
