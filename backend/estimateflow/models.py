import random
import string
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

NAME_MAX = 32
HOST_KEY_MAX = 80
TITLE_MAX = 120
NOTES_MAX = 800
VOTE_MAX = 8

PALETTE = [
    "#6366f1",
    "#8b5cf6",
    "#ec4899",
    "#06b6d4",
    "#10b981",
    "#f59e0b",
    "#ef4444",
    "#3b82f6",
]

_ID_ALPHABET = string.ascii_letters + string.digits + '_-'


def now_ms() -> int:
    return int(time.time() * 1000)


def random_id(length: int) -> str:
    return ''.join(random.choices(_ID_ALPHABET, k=length))


def new_session_id() -> str:
    """Mint a fresh session id for clients that want the server to pick one."""
    return random_id(10)


def pick_color(seed: str) -> str:
    """Deterministic palette color for a participant id (32-bit rolling hash)."""
    h = 0
    for ch in seed:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return PALETTE[h % len(PALETTE)]


@dataclass
class Participant:
    id: str
    name: str
    color: str
    is_host: bool = False
    is_observer: bool = False
    joined_at: int = field(default_factory=now_ms)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'color': self.color,
            'isHost': self.is_host,
            'isObserver': self.is_observer,
            'joinedAt': self.joined_at,
        }


@dataclass
class Finalized:
    value: str
    by: str
    at: int

    def to_dict(self):
        return {'value': self.value, 'by': self.by, 'at': self.at}


@dataclass
class Story:
    id: str
    title: str
    notes: Optional[str] = None
    created_at: int = field(default_factory=now_ms)
    finalized: Optional[Finalized] = None

    def to_dict(self):
        data = {
            'id': self.id,
            'title': self.title,
            'createdAt': self.created_at,
        }
        if self.notes:
            data['notes'] = self.notes
        if self.finalized is not None:
            data['finalized'] = self.finalized.to_dict()
        return data


@dataclass
class RoundState:
    story_id: Optional[str] = None
    revealed: bool = False
    votes_by_participant_id: Dict[str, Optional[str]] = field(default_factory=dict)
    updated_at: int = field(default_factory=now_ms)

    def to_dict(self):
        return {
            'storyId': self.story_id,
            'revealed': self.revealed,
            'votesByParticipantId': dict(self.votes_by_participant_id),
            'updatedAt': self.updated_at,
        }


@dataclass
class Session:
    id: str
    created_at: int = field(default_factory=now_ms)
    host_key: Optional[str] = None
    participants: Dict[str, Participant] = field(default_factory=dict)
    stories: List[Story] = field(default_factory=list)
    current_story_id: Optional[str] = None
    round: RoundState = field(default_factory=RoundState)
    # Monotonic seconds of the last applied command; drives idle eviction
    last_active: float = field(default_factory=time.monotonic, repr=False, compare=False)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def __post_init__(self):
        self.round.updated_at = self.created_at

    @property
    def host(self) -> Optional[Participant]:
        return next((p for p in self.participants.values() if p.is_host), None)

    def find_story(self, story_id: Optional[str]) -> Optional[Story]:
        if not story_id:
            return None
        return next((s for s in self.stories if s.id == story_id), None)

    def is_host(self, participant_id: str) -> bool:
        p = self.participants.get(participant_id)
        return bool(p and p.is_host)

    def touch(self, at: Optional[float] = None) -> None:
        self.last_active = time.monotonic() if at is None else at

    def to_dict(self):
        """Full wire view broadcast as ``session:update``. Never includes the host key."""
        return {
            'sessionId': self.id,
            'createdAt': self.created_at,
            'participants': [p.to_dict() for p in self.participants.values()],
            'stories': [s.to_dict() for s in self.stories],
            'currentStoryId': self.current_story_id,
            'round': self.round.to_dict(),
        }
