from functools import partial
from typing import Dict, Optional

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from buzzer import registry, round_clock, socketio
from buzzer.errors import RoomError
from buzzer.models import Room
from buzzer.services.rooms import project
from buzzer.services.rooms.registry import ACTION_ENDED, ACTION_RESET

# Errors the sender is told about; the rest are silent no-ops
_REPORTED_ERRORS = {RoomError.ROOM_NOT_FOUND, RoomError.EMPTY_NAME, RoomError.NAME_TAKEN}

_sid_to_room: Dict[str, str] = {}
_namespace = '/'


def _get_sid() -> str:
    return request.sid  # type: ignore


def _report(error: Optional[RoomError]) -> None:
    if error in _REPORTED_ERRORS:
        emit('error_msg', {'message': error.message})


def _broadcast(event: str, payload, room: Room) -> None:
    socketio.emit(event, payload, to=room.code, namespace=_namespace)


def _broadcast_state(room: Room) -> None:
    with room.lock:
        state = project(room).to_dict()
    _broadcast('state', state, room)


def _broadcast_round_ended(room: Room) -> None:
    with room.lock:
        payload = {
            'winner': room.current_winner,
            'winners': list(room.winners),
            'presses': [p.to_dict() for p in room.presses],
        }
    _broadcast('round_ended', payload, room)


def _leave_current(sid: str, connected: bool = True) -> None:
    code = _sid_to_room.pop(sid, None)
    if not code:
        return
    result = registry.leave_room(code, sid)
    if connected:
        leave_room(code)
    if result.room is not None:
        _broadcast_state(result.room)
        if result.host_changed:
            new_host = result.room.find_player(result.new_host_id)
            current_app.logger.info(f"[host-change] room={code} new_host={new_host.name if new_host else None}")
    elif result.room_deleted:
        current_app.logger.info(f"[room-deleted] room={code} (empty)")
    current_app.logger.info(f"[leave] room={code} sid={sid}")


def _on_countdown_elapsed(app, room: Room) -> None:
    # Runs from the clock's background task, outside any request context
    if not registry.begin_round(room):
        app.logger.info(f"[round-skip] room={room.code} no longer counting down")
        return
    _broadcast('countdown_end', {'roundStartTime': room.round_start_time}, room)
    _broadcast_state(room)
    app.logger.info(f"[round-live] room={room.code} start={room.round_start_time}")


def handle_connect(auth=None):
    current_app.logger.info(f"[connect] sid={_get_sid()}")


def handle_disconnect(reason=None):
    sid = _get_sid()
    current_app.logger.info(f"[disconnect] sid={sid}")
    _leave_current(sid, connected=False)


def handle_create_room(data=None):
    sid = _get_sid()
    _leave_current(sid)
    room = registry.create_room(sid)
    join_room(room.code)
    _sid_to_room[sid] = room.code
    emit('room_created', {'code': room.code, 'name': room.players[0].name})
    _broadcast_state(room)
    current_app.logger.info(f"[room-created] room={room.code} host={sid}")


def handle_join_room(data):
    code = (data or {}).get('code')
    if not code:
        emit('error_msg', {'message': 'Room code is required'})
        return
    sid = _get_sid()
    result = registry.join_room(code, sid)
    if result.error:
        _report(result.error)
        return
    room = result.room
    if _sid_to_room.get(sid) not in (None, room.code):
        _leave_current(sid)
    join_room(room.code)
    _sid_to_room[sid] = room.code
    emit('joined_room', {'name': result.name})
    _broadcast_state(room)
    current_app.logger.info(f"[join] room={room.code} name={result.name} rejoin={result.rejoined}")


def handle_leave_room(data=None):
    _leave_current(_get_sid())


def handle_change_name(data):
    sid = _get_sid()
    code = _sid_to_room.get(sid)
    if not code:
        return
    result = registry.change_name(code, sid, (data or {}).get('newName'))
    if not result.success:
        _report(result.error)
        return
    emit('name_changed', {'name': result.name})
    room = registry.get_room(code)
    if room is not None:
        _broadcast_state(room)
    current_app.logger.info(f"[rename] room={code} {result.old_name} -> {result.name}")


def handle_press(data=None):
    sid = _get_sid()
    code = _sid_to_room.get(sid)
    if not code:
        return
    result = registry.record_press(code, sid)
    room = registry.get_room(code)
    if room is None:
        return
    if result.ready_signal:
        _broadcast_state(room)
        return
    if not result.accepted:
        return

    with room.lock:
        presses = [p.to_dict() for p in room.presses]
    _broadcast('press_recorded', {'presses': presses}, room)
    if result.round_ended:
        _broadcast_round_ended(room)
        current_app.logger.info(f"[round-ended] room={code} all players pressed winner={room.current_winner}")
    _broadcast_state(room)


def handle_reset(data=None):
    sid = _get_sid()
    code = _sid_to_room.get(sid)
    if not code:
        return
    result = registry.reset_round(code, sid)
    room = registry.get_room(code)
    if room is None:
        return

    if result.action == ACTION_ENDED:
        _broadcast_round_ended(room)
        _broadcast_state(room)
        current_app.logger.info(f"[round-ended] room={code} winner={room.current_winner}")
    elif result.action == ACTION_RESET:
        _broadcast_state(room)
        _broadcast('countdown_start', {
            'countdownSeconds': result.countdown_seconds,
            'serverTime': registry.now_ms(),
        }, room)
        app = current_app._get_current_object()
        round_clock.schedule(room, result.countdown_seconds, partial(_on_countdown_elapsed, app))
        current_app.logger.info(f"[round-reset] room={code} countdown={result.countdown_seconds}s")


def handle_update_countdown(data):
    sid = _get_sid()
    code = _sid_to_room.get(sid)
    if not code:
        return
    result = registry.update_countdown(code, sid, (data or {}).get('seconds'))
    if not result.success:
        return
    room = registry.get_room(code)
    if room is not None:
        _broadcast_state(room)
    current_app.logger.info(f"[countdown] room={code} seconds={result.seconds}")


def reset_connections() -> None:
    _sid_to_room.clear()


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    global _namespace
    _namespace = namespace
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('create_room', handle_create_room, namespace=namespace)
    socketio.on_event('join_room', handle_join_room, namespace=namespace)
    socketio.on_event('leave_room', handle_leave_room, namespace=namespace)
    socketio.on_event('change_name', handle_change_name, namespace=namespace)
    socketio.on_event('press', handle_press, namespace=namespace)
    socketio.on_event('reset', handle_reset, namespace=namespace)
    socketio.on_event('update_countdown', handle_update_countdown, namespace=namespace)
