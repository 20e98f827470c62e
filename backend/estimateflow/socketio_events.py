import functools
from typing import Any, Optional

from flask import current_app, request

from estimateflow import socketio
from estimateflow.models import new_session_id
from estimateflow.services.sessions import commands
from estimateflow.services.sessions.commands import CommandRejected

NAMESPACE = '/'


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _store():
    return current_app.extensions['estimateflow']['store']


def _channel():
    return current_app.extensions['estimateflow']['channel']


def _session_id(data: Any) -> Optional[str]:
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        value = data.get('sessionId')
        return value if isinstance(value, str) else None
    return None


def _payload(data: Any) -> dict:
    return data if isinstance(data, dict) else {}


def _host_id(session) -> Optional[str]:
    host = session.host
    return host.id if host else None


def _log_host_change(session, before: Optional[str]) -> None:
    after = _host_id(session)
    if after is not None and after != before:
        current_app.logger.info(f"[host-promote] session={session.id} participant={after} previous={before}")


def _guarded(handler):
    """Log and drop unexpected errors so one bad command can't take down the server."""
    @functools.wraps(handler)
    def wrapper(*args):
        try:
            return handler(*args)
        except Exception:
            current_app.logger.exception(f"[handler-error] handler={handler.__name__} sid={_get_sid()}")
            return None
    return wrapper


def _apply(event: str, data: Any, command, *args) -> bool:
    """Resolve the session, apply one command under its lock and broadcast on change."""
    session = _store().get(_session_id(data))
    if session is None:
        return False
    sid = _get_sid()
    with session.lock:
        before = _host_id(session)
        changed = bool(command(session, sid, *args))
        if changed:
            session.touch()
            _channel().publish(session)
            _log_host_change(session, before)
    if not changed:
        current_app.logger.warning(f"[ignored] event={event} session={session.id} participant={sid}")
    return changed


def handle_connect(auth=None):
    current_app.logger.info(f"[connect] sid={_get_sid()}")


@_guarded
def handle_disconnect(reason=None):
    # Implicit leave from every session this connection belongs to
    sid = _get_sid()
    for session in _store().sessions_with(sid):
        with session.lock:
            before = _host_id(session)
            if commands.leave(session, sid):
                session.touch()
                _channel().publish(session)
            _log_host_change(session, before)
        current_app.logger.info(f"[disconnect] session={session.id} participant={sid} reason={reason}")


def handle_join(data):
    try:
        if not isinstance(data, dict):
            return {'ok': False, 'error': 'invalid_payload'}
        sid = _get_sid()
        session_id = data.get('sessionId')
        if not isinstance(session_id, str) or not session_id:
            session_id = new_session_id()

        session = _store().get_or_create(session_id)
        with session.lock:
            before = _host_id(session)
            participant = commands.join(
                session,
                sid,
                name=data.get('name'),
                as_host=bool(data.get('asHost')),
                observer=bool(data.get('observer')),
                host_key=data.get('hostKey'),
            )
            _channel().join(session.id)
            _channel().publish(session)
            _log_host_change(session, before)
            host = session.host
        current_app.logger.info(
            f"[join] session={session.id} participant={sid} name={participant.name!r} "
            f"host={host.id if host else None}"
        )
        return {'ok': True, 'sessionId': session.id, 'participantId': sid}
    except Exception as exc:
        current_app.logger.exception("[join-error] join failed")
        return {'ok': False, 'error': str(exc) or 'join_failed'}


@_guarded
def handle_leave(data):
    session = _store().get(_session_id(data))
    if session is None:
        return
    sid = _get_sid()
    with session.lock:
        before = _host_id(session)
        if commands.leave(session, sid):
            session.touch()
            _channel().publish(session)
            current_app.logger.info(f"[leave] session={session.id} participant={sid}")
            _log_host_change(session, before)
    _channel().leave(session.id)


@_guarded
def handle_add_story(data):
    data = _payload(data)
    _apply('story:add', data, commands.add_story, data.get('title'), data.get('notes'))


@_guarded
def handle_update_participant(data):
    data = _payload(data)
    _apply(
        'participant:update', data, commands.update_participant,
        data.get('name'), data.get('isObserver'), data.get('hostKey'),
    )


@_guarded
def handle_set_current_story(data):
    data = _payload(data)
    _apply('story:setCurrent', data, commands.set_current_story, data.get('storyId'))


@_guarded
def handle_set_vote(data):
    data = _payload(data)
    _apply('vote:set', data, commands.set_vote, data.get('value'))


@_guarded
def handle_reveal(data):
    _apply('round:reveal', data, commands.reveal)


@_guarded
def handle_reset(data):
    _apply('round:reset', data, commands.reset)


@_guarded
def handle_finalize(data):
    data = _payload(data)
    _apply('round:finalize', data, commands.finalize, data.get('value'))


@_guarded
def handle_snapshot(data):
    session = _store().get(_session_id(data))
    if session is None:
        return {'ok': False, 'error': 'session_not_found'}
    try:
        with session.lock:
            snapshot = commands.snapshot(session, _get_sid())
    except CommandRejected as exc:
        return {'ok': False, 'error': exc.error}
    return {'ok': True, 'snapshot': snapshot}


@_guarded
def handle_clear(data):
    session = _store().get(_session_id(data))
    if session is None:
        return {'ok': False, 'error': 'session_not_found'}
    sid = _get_sid()
    try:
        with session.lock:
            commands.clear_session_data(session, sid)
            session.touch()
            _channel().publish(session)
    except CommandRejected as exc:
        current_app.logger.warning(f"[clear-rejected] session={session.id} participant={sid} error={exc.error}")
        return {'ok': False, 'error': exc.error}
    current_app.logger.info(f"[clear] session={session.id} participant={sid}")
    return {'ok': True}


def register_socketio_handlers(namespace: str = NAMESPACE) -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('session:join', handle_join, namespace=namespace)
    socketio.on_event('session:leave', handle_leave, namespace=namespace)
    socketio.on_event('story:add', handle_add_story, namespace=namespace)
    socketio.on_event('participant:update', handle_update_participant, namespace=namespace)
    socketio.on_event('story:setCurrent', handle_set_current_story, namespace=namespace)
    socketio.on_event('vote:set', handle_set_vote, namespace=namespace)
    socketio.on_event('round:reveal', handle_reveal, namespace=namespace)
    socketio.on_event('round:reset', handle_reset, namespace=namespace)
    socketio.on_event('round:finalize', handle_finalize, namespace=namespace)
    socketio.on_event('session:snapshot', handle_snapshot, namespace=namespace)
    socketio.on_event('session:clear', handle_clear, namespace=namespace)
