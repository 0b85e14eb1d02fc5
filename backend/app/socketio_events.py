import functools
import threading
from typing import Dict, Optional, Tuple

from flask import current_app, request
from flask_socketio import emit

from app import socketio
from app.models import Room
from app.services.games import GameError

NAMESPACE = '/'


class RoomConnections:
    """Membership index: room id -> {player name -> sid}, plus the reverse.

    Targeted emission is a dict lookup rather than a scan of live sockets.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._members: Dict[str, Dict[str, str]] = {}
        self._sid_to_ctx: Dict[str, Tuple[str, str]] = {}

    def bind(self, sid: str, room_id: str, player: str) -> None:
        with self._lock:
            self._members.setdefault(room_id, {})[player] = sid
            self._sid_to_ctx[sid] = (room_id, player)

    def unbind(self, sid: str) -> Optional[Tuple[str, str]]:
        with self._lock:
            ctx = self._sid_to_ctx.pop(sid, None)
            if ctx:
                room_id, player = ctx
                members = self._members.get(room_id, {})
                if members.get(player) == sid:
                    del members[player]
                if not members:
                    self._members.pop(room_id, None)
            return ctx

    def context(self, sid: str) -> Optional[Tuple[str, str]]:
        with self._lock:
            return self._sid_to_ctx.get(sid)

    def sid_for(self, room_id: str, player: str) -> Optional[str]:
        with self._lock:
            return self._members.get(room_id, {}).get(player)

    def members(self, room_id: str) -> Dict[str, str]:
        with self._lock:
            return dict(self._members.get(room_id, {}))


class SocketPublisher:
    """Engine publisher that emits per-player snapshots over Socket.IO."""

    def __init__(self, sio, connections: RoomConnections, namespace: str = NAMESPACE):
        self.sio = sio
        self.connections = connections
        self.namespace = namespace

    def publish_state(self, room: Room) -> None:
        members = self.connections.members(room.id)
        for player in room.players:
            sid = members.get(player)
            if sid is None:
                continue
            self.sio.emit('gameState', room.to_dict(player), to=sid, namespace=self.namespace)

    def notify(self, room: Room, player: str, event: str, payload) -> None:
        sid = self.connections.sid_for(room.id, player)
        if sid is not None:
            self.sio.emit(event, payload, to=sid, namespace=self.namespace)


def _engine():
    return current_app.extensions['game_engine']


def _connections() -> RoomConnections:
    return current_app.extensions['room_connections']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _current_player(room_id) -> str:
    ctx = _connections().context(_get_sid())
    if not ctx or ctx[0] != room_id:
        raise GameError('You are not a player in this game')
    return ctx[1]


def _leave_current_room() -> None:
    ctx = _connections().unbind(_get_sid())
    if ctx:
        _engine().leave_game(*ctx)


def _reports_errors(handler):
    @functools.wraps(handler)
    def wrapper(data=None):
        try:
            handler(data)
        except GameError as exc:
            emit('error', {'message': exc.message})
    return wrapper


def _payload(data) -> dict:
    if not isinstance(data, dict):
        raise GameError('Invalid request')
    return data


def _room_id_from(data):
    # startGame / nextReveal send the bare id; other events send an object
    if isinstance(data, dict):
        return data.get('gameId')
    return data


@_reports_errors
def handle_create_game(player_name):
    engine = _engine()
    room = engine.create_game(player_name)
    _leave_current_room()
    _connections().bind(_get_sid(), room.id, room.owner)
    engine.broadcast(room.id)


@_reports_errors
def handle_join_game(data):
    data = _payload(data)
    room_id = data.get('gameId')
    ctx = _connections().context(_get_sid())
    if ctx and ctx[0] == room_id:
        raise GameError('Already in this game')
    engine = _engine()
    engine.join_game(room_id, data.get('playerName'))
    _leave_current_room()
    _connections().bind(_get_sid(), room_id, data['playerName'].strip())
    engine.broadcast(room_id)


@_reports_errors
def handle_start_game(data):
    room_id = _room_id_from(data)
    _engine().start_game(room_id, _current_player(room_id))


@_reports_errors
def handle_submit_ranking(data):
    data = _payload(data)
    room_id = data.get('gameId')
    _engine().submit_ranking(room_id, _current_player(room_id), data.get('ranking'))


@_reports_errors
def handle_submit_guess(data):
    data = _payload(data)
    room_id = data.get('gameId')
    _engine().submit_guess(room_id, _current_player(room_id), data.get('guess'))


@_reports_errors
def handle_next_reveal(data):
    room_id = _room_id_from(data)
    _engine().next_reveal(room_id, _current_player(room_id))


def handle_disconnect(*args):
    _leave_current_room()


def register_socketio_handlers(namespace: str = NAMESPACE) -> None:
    """Register Socket.IO event handlers on the given namespace."""
    socketio.on_event('createGame', handle_create_game, namespace=namespace)
    socketio.on_event('joinGame', handle_join_game, namespace=namespace)
    socketio.on_event('startGame', handle_start_game, namespace=namespace)
    socketio.on_event('submitRanking', handle_submit_ranking, namespace=namespace)
    socketio.on_event('submitGuess', handle_submit_guess, namespace=namespace)
    socketio.on_event('nextReveal', handle_next_reveal, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
