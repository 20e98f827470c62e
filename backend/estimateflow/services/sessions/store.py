import logging
import threading
import time
from typing import Dict, List, Optional

from estimateflow.models import Session


class SessionStore:
    """In-memory registry of sessions keyed by session id.

    One store is constructed per application; sessions are created lazily
    on first reference and live until :meth:`sweep_idle` evicts them.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id) -> bool:
        return session_id in self._sessions

    def get(self, session_id) -> Optional[Session]:
        if not isinstance(session_id, str):
            return None
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(id=session_id)
                self._sessions[session_id] = session
                self._logger.info(f"[session-create] session={session_id} total={len(self._sessions)}")
            # Touch under the store lock so a concurrent sweep never evicts it
            session.touch()
            return session

    def sessions_with(self, participant_id: str) -> List[Session]:
        with self._lock:
            return [s for s in self._sessions.values() if participant_id in s.participants]

    def sweep_idle(self, ttl_sec: float, now: Optional[float] = None) -> List[str]:
        """Evict sessions with no participants idle for more than ``ttl_sec``.

        Returns the evicted ids. A ttl of 0 or less disables eviction.
        """
        if ttl_sec <= 0:
            return []
        now = time.monotonic() if now is None else now
        evicted = []
        with self._lock:
            for session_id, session in list(self._sessions.items()):
                if session.participants:
                    continue
                if now - session.last_active > ttl_sec:
                    del self._sessions[session_id]
                    evicted.append(session_id)
        if evicted:
            self._logger.info(f"[sweep] evicted={len(evicted)} remaining={len(self._sessions)}")
        return evicted
