"""Session state machine.

Every command takes ``(session, participant_id, ...)`` and mutates the
session in place. Silent commands return ``True`` when something changed
and ``False`` for a validation no-op; the caller broadcasts only on
``True``. Acknowledged commands raise :class:`CommandRejected` instead.

Callers must hold ``session.lock`` for the duration of a command and its
broadcast.
"""

from typing import Any, Optional

from estimateflow.models import (
    HOST_KEY_MAX,
    NAME_MAX,
    NOTES_MAX,
    TITLE_MAX,
    VOTE_MAX,
    Finalized,
    Participant,
    RoundState,
    Session,
    Story,
    now_ms,
    pick_color,
    random_id,
)
from .estimates import DECK, summarize_round


class CommandRejected(Exception):
    """Raised by acknowledged commands; ``error`` goes back to the caller."""

    def __init__(self, error: str):
        super().__init__(error)
        self.error = error


def _host_key(value: Any) -> str:
    return value[:HOST_KEY_MAX] if isinstance(value, str) else ''


def _card_value(value: Any) -> str:
    """Render a vote payload the way browser clients stringify it: 5.0 -> "5", True -> "true"."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)[:VOTE_MAX]


def _can_claim_host(session: Session, presented: str) -> bool:
    return bool(presented) and session.host_key == presented


def set_host(session: Session, participant_id: str) -> None:
    """Make ``participant_id`` the only host."""
    for pid, p in session.participants.items():
        p.is_host = pid == participant_id


def assign_host_if_needed(session: Session) -> Optional[str]:
    """Promote the earliest-joined participant when nobody holds host.

    Returns the id of the promoted participant, if any.
    """
    if session.host is not None:
        return None
    # sorted() is stable, so equal joinedAt falls back to insertion order
    ordered = sorted(session.participants.values(), key=lambda p: p.joined_at)
    if not ordered:
        return None
    set_host(session, ordered[0].id)
    return ordered[0].id


def reset_round(session: Session, story_id: Optional[str]) -> None:
    session.round = RoundState(
        story_id=story_id,
        revealed=False,
        votes_by_participant_id={pid: None for pid in session.participants},
        updated_at=now_ms(),
    )


def join(session: Session, participant_id: str, name: Any = None, as_host: bool = False,
         observer: bool = False, host_key: Any = None) -> Participant:
    name = (name if isinstance(name, str) and name else 'Anon')[:NAME_MAX]
    presented = _host_key(host_key)

    # First host join sets the key; later joins re-claim host by presenting it.
    is_first_claim = bool(as_host) and not session.host_key and bool(presented)
    if is_first_claim:
        session.host_key = presented
    is_host = is_first_claim or _can_claim_host(session, presented)

    participant = Participant(
        id=participant_id,
        name=name,
        color=pick_color(participant_id),
        is_host=is_host,
        is_observer=bool(observer),
        joined_at=now_ms(),
    )
    session.participants[participant_id] = participant
    if is_host:
        set_host(session, participant_id)
    assign_host_if_needed(session)

    votes = session.round.votes_by_participant_id
    if participant_id not in votes:
        votes[participant_id] = None
        session.round.updated_at = now_ms()
    return participant


def leave(session: Session, participant_id: str) -> bool:
    if participant_id not in session.participants:
        return False
    del session.participants[participant_id]
    session.round.votes_by_participant_id.pop(participant_id, None)
    assign_host_if_needed(session)
    return True


def update_participant(session: Session, participant_id: str, name: Any = None,
                       is_observer: Any = None, host_key: Any = None) -> bool:
    p = session.participants.get(participant_id)
    if p is None:
        return False

    if isinstance(name, str):
        next_name = name.strip()[:NAME_MAX]
        if next_name:
            p.name = next_name
    if isinstance(is_observer, bool):
        p.is_observer = is_observer

    if _can_claim_host(session, _host_key(host_key)):
        set_host(session, participant_id)

    # Observers cannot hold a vote
    votes = session.round.votes_by_participant_id
    if is_observer is True and votes.get(participant_id) is not None:
        votes[participant_id] = None
        session.round.updated_at = now_ms()
    return True


def add_story(session: Session, participant_id: str, title: Any, notes: Any = None) -> Optional[Story]:
    title = (title if isinstance(title, str) else '').strip()[:TITLE_MAX]
    notes = (notes if isinstance(notes, str) else '').strip()[:NOTES_MAX]
    if not title:
        return None

    story = Story(id=random_id(8), title=title, notes=notes or None, created_at=now_ms())
    session.stories.append(story)

    if not session.current_story_id:
        session.current_story_id = story.id
        reset_round(session, story.id)
    return story


def set_current_story(session: Session, participant_id: str, story_id: Any) -> bool:
    if not session.is_host(participant_id):
        return False
    if session.find_story(story_id) is None:
        return False
    session.current_story_id = story_id
    reset_round(session, story_id)
    return True


def set_vote(session: Session, participant_id: str, value: Any) -> bool:
    if not session.current_story_id or value is None:
        return False
    p = session.participants.get(participant_id)
    if p is None or p.is_observer:
        return False
    # Votes are frozen once revealed
    if session.round.revealed:
        return False
    session.round.story_id = session.current_story_id
    session.round.votes_by_participant_id[participant_id] = _card_value(value)
    session.round.updated_at = now_ms()
    return True


def reveal(session: Session, participant_id: str) -> bool:
    if not session.is_host(participant_id):
        return False
    session.round.revealed = True
    session.round.updated_at = now_ms()
    return True


def reset(session: Session, participant_id: str) -> bool:
    if not session.is_host(participant_id):
        return False
    reset_round(session, session.current_story_id)
    return True


def finalize(session: Session, participant_id: str, value: Any) -> bool:
    p = session.participants.get(participant_id)
    if p is None or not p.is_host or value is None:
        return False
    story = session.find_story(session.current_story_id)
    if story is None:
        return False
    story.finalized = Finalized(value=_card_value(value), by=p.name, at=now_ms())
    return True


def snapshot(session: Session, participant_id: str) -> dict:
    """Export view for the host: the broadcast shape plus a vote summary."""
    if not session.is_host(participant_id):
        raise CommandRejected('not_host')
    data = session.to_dict()
    data['exportedAt'] = now_ms()
    data['summary'] = summarize_round(session)
    data['deck'] = list(DECK)
    return data


def clear_session_data(session: Session, participant_id: str) -> None:
    """Drop stories and round state; the roster and host key survive."""
    if not session.is_host(participant_id):
        raise CommandRejected('not_host')
    session.stories = []
    session.current_story_id = None
    reset_round(session, None)
