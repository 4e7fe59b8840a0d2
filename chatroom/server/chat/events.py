"""
Inbound events handled by the chat hub.

Transports turn raw frames and connection notifications into these objects
and submit them to ChatServer, which processes them one at a time.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from chatroom.common.constants import MessageTypes
from chatroom.common.errors import ProtocolError
from chatroom.common.protocol_definitions import AudioMeta, decode_message, optional_str, parse_audio_meta


@dataclass(frozen=True)
class ConnectionOpened:
    connection_id: str
    send: Callable[[str], None] = field(repr=False)
    peer: Any = None


@dataclass(frozen=True)
class JoinRequested:
    connection_id: str
    username: Any
    avatar: Optional[str] = None


@dataclass(frozen=True)
class MessagePosted:
    connection_id: str
    content: str
    image: Optional[str] = None
    audio: Optional[str] = None
    audio_meta: Optional[AudioMeta] = None


@dataclass(frozen=True)
class AvatarUpdateRequested:
    connection_id: str
    username: str
    avatar: Optional[str] = None


@dataclass(frozen=True)
class ConnectionClosed:
    connection_id: str


@dataclass(frozen=True)
class MalformedEvent:
    connection_id: str
    reason: str


InboundEvent = Union[
    ConnectionOpened, JoinRequested, MessagePosted, AvatarUpdateRequested, ConnectionClosed, MalformedEvent
]


def _parse_join(connection_id: str, data: dict) -> JoinRequested:
    if 'username' not in data:
        raise ProtocolError("Join requires a username")
    # username is validated by the join protocol so a bad one gets a join_error
    return JoinRequested(connection_id, data['username'], optional_str(data, 'avatar'))


def _parse_message(connection_id: str, data: dict) -> MessagePosted:
    content = data.get('content', '')
    if not isinstance(content, str):
        raise ProtocolError("Field 'content' must be a string")
    image = optional_str(data, 'image')
    audio = optional_str(data, 'audio')
    audio_meta = parse_audio_meta(data.get('audio_meta'))
    if not content.strip() and image is None and audio is None:
        raise ProtocolError("Message has no content")
    return MessagePosted(connection_id, content, image, audio, audio_meta)


def _parse_update_avatar(connection_id: str, data: dict) -> AvatarUpdateRequested:
    username = data.get('username')
    if not isinstance(username, str) or not username:
        raise ProtocolError("Avatar update requires a username")
    return AvatarUpdateRequested(connection_id, username, optional_str(data, 'avatar'))


_PARSERS = {
    MessageTypes.JOIN: _parse_join,
    MessageTypes.MESSAGE: _parse_message,
    MessageTypes.UPDATE_AVATAR: _parse_update_avatar,
}


def parse_client_event(connection_id: str, raw) -> InboundEvent:
    """Turn one raw frame from ``connection_id`` into an inbound event.

    Never raises for bad input; anything unusable becomes a MalformedEvent.
    """
    try:
        data = decode_message(raw)
        parser = _PARSERS.get(data['type'])
        if parser is None:
            raise ProtocolError(f"Unknown message type '{data['type']}'")
        return parser(connection_id, data)
    except ProtocolError as e:
        return MalformedEvent(connection_id, str(e))
