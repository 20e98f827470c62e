from typing import Optional

from flask_socketio import join_room, leave_room

from estimateflow.models import Session

UPDATE_EVENT = 'session:update'
HIDDEN_VOTE = 'hidden'


def room_for(session_id: str) -> str:
    return f"session:{session_id}"


def view_for(session: Session, recipient_id: Optional[str]) -> dict:
    """Session view with other participants' votes masked until reveal."""
    view = session.to_dict()
    if session.round.revealed:
        return view
    votes = view['round']['votesByParticipantId']
    for pid, value in votes.items():
        if value is not None and pid != recipient_id:
            votes[pid] = HIDDEN_VOTE
    return view


class RoomChannel:
    """Fans the full session snapshot out to every connection in its room.

    ``join``/``leave`` must be called from inside a Socket.IO handler since
    they act on the current connection. ``publish`` can be called from
    anywhere the socketio server is reachable.
    """

    def __init__(self, socketio, namespace: str = '/', hide_votes: bool = False):
        self.socketio = socketio
        self.namespace = namespace
        self.hide_votes = hide_votes

    def join(self, session_id: str) -> None:
        join_room(room_for(session_id), namespace=self.namespace)

    def leave(self, session_id: str) -> None:
        leave_room(room_for(session_id), namespace=self.namespace)

    def publish(self, session: Session) -> None:
        if self.hide_votes and not session.round.revealed:
            # Every participant's sid is also its own room
            for pid in list(session.participants):
                self.socketio.emit(UPDATE_EVENT, view_for(session, pid), to=pid, namespace=self.namespace)
            return
        self.socketio.emit(UPDATE_EVENT, session.to_dict(), to=room_for(session.id), namespace=self.namespace)
