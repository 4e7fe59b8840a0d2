"""
Protocol definitions for the realtime chatroom.

This module defines the message structures and data formats used in communication
between client and server components. Every frame is a single JSON object with a
``type`` field; the TCP transport sends one per line, the WebSocket transport one
per text frame.
"""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Union

from chatroom.common.constants import MessageKinds, MessageTypes
from chatroom.common.errors import FrameTooLarge, ProtocolError


@dataclass(frozen=True)
class Identity:
    """A participant registered under a username while connected."""
    username: str
    avatar: Optional[str] = None
    is_online: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "avatar": self.avatar,
            "is_online": self.is_online
        }


@dataclass(frozen=True)
class AudioMeta:
    """Descriptive metadata attached to an audio message."""
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    cover: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "cover": self.cover
        }


@dataclass(frozen=True)
class TextMessage:
    """Chat event carrying only text."""
    kind: ClassVar[str] = MessageKinds.TEXT

    id: str
    sender_username: str
    content: str
    timestamp: str
    sender_avatar: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "username": self.sender_username,
            "content": self.content,
            "timestamp": self.timestamp,
            "avatar": self.sender_avatar
        }


@dataclass(frozen=True)
class ImageMessage(TextMessage):
    """Chat event with an image reference."""
    kind: ClassVar[str] = MessageKinds.IMAGE

    image: str = ''

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["image"] = self.image
        return data


@dataclass(frozen=True)
class AudioMessage(TextMessage):
    """Chat event with an audio reference and its metadata."""
    kind: ClassVar[str] = MessageKinds.AUDIO

    audio: str = ''
    audio_meta: AudioMeta = field(default_factory=AudioMeta)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["audio"] = self.audio
        data["audio_meta"] = self.audio_meta.to_dict()
        return data


ChatEvent = Union[TextMessage, ImageMessage, AudioMessage]


def new_chat_event(sender_username: str, content: str, sender_avatar: Optional[str] = None,
                   image: Optional[str] = None, audio: Optional[str] = None,
                   audio_meta: Optional[AudioMeta] = None) -> ChatEvent:
    """Stamp a new chat event with a fresh id and the receipt time."""
    common = dict(
        id=uuid.uuid4().hex,
        sender_username=sender_username,
        content=content,
        timestamp=datetime.now().isoformat(),
        sender_avatar=sender_avatar
    )
    if audio is not None:
        return AudioMessage(audio=audio, audio_meta=audio_meta or AudioMeta(), **common)
    if image is not None:
        return ImageMessage(image=image, **common)
    return TextMessage(**common)


def encode_message(message: Dict[str, Any]) -> str:
    """Serialize one outbound frame."""
    return json.dumps(message, separators=(',', ':'))


def decode_message(raw: Union[str, bytes]) -> Dict[str, Any]:
    """Parse one inbound frame into a dict with a non-empty string ``type``."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError:
            raise ProtocolError("Frame is not valid UTF-8")
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        raise ProtocolError("Malformed JSON")
    if not isinstance(message, dict):
        raise ProtocolError("Frame must be a JSON object")
    msg_type = message.get('type')
    if not isinstance(msg_type, str) or not msg_type:
        raise ProtocolError("Missing message type")
    return message


async def read_frame(reader: asyncio.StreamReader) -> bytes:
    """Read one newline-delimited frame; b'' at EOF.

    A line longer than the reader's limit is consumed up to and including its
    newline before FrameTooLarge is raised, so the next call starts on a frame
    boundary even when the oversized line arrives in pieces.
    """
    try:
        return await reader.readuntil(b'\n')
    except asyncio.IncompleteReadError as e:
        return e.partial
    except asyncio.LimitOverrunError as e:
        await _skip_line(reader, e.consumed)
        raise FrameTooLarge("Message too large")


async def _skip_line(reader: asyncio.StreamReader, consumed: int):
    while True:
        try:
            await reader.readexactly(consumed)
            await reader.readuntil(b'\n')
            return
        except asyncio.IncompleteReadError:
            return
        except asyncio.LimitOverrunError as e:
            consumed = e.consumed


def optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    """Read an optional opaque string field; anything but str/None is malformed."""
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ProtocolError(f"Field '{key}' must be a string")
    return value


def parse_audio_meta(data: Any) -> Optional[AudioMeta]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ProtocolError("Field 'audio_meta' must be an object")
    return AudioMeta(
        title=optional_str(data, 'title'),
        artist=optional_str(data, 'artist'),
        album=optional_str(data, 'album'),
        cover=optional_str(data, 'cover')
    )


# Client to server

def create_join_message(username: str, avatar: Optional[str] = None) -> Dict[str, Any]:
    """Create a join message."""
    return {
        "type": MessageTypes.JOIN,
        "username": username,
        "avatar": avatar
    }


def create_chat_message(content: str, image: Optional[str] = None, audio: Optional[str] = None,
                        audio_meta: Optional[AudioMeta] = None) -> Dict[str, Any]:
    """Create a chat message."""
    message = {
        "type": MessageTypes.MESSAGE,
        "content": content
    }
    if image is not None:
        message["image"] = image
    if audio is not None:
        message["audio"] = audio
    if audio_meta is not None:
        message["audio_meta"] = audio_meta.to_dict()
    return message


def create_update_avatar_message(username: str, avatar: Optional[str]) -> Dict[str, Any]:
    """Create an avatar update message."""
    return {
        "type": MessageTypes.UPDATE_AVATAR,
        "username": username,
        "avatar": avatar
    }


# Server to client

def create_users_message(identities: List[Identity]) -> Dict[str, Any]:
    """Create a presence list message."""
    return {
        "type": MessageTypes.USERS,
        "users": [identity.to_dict() for identity in identities]
    }


def create_history_message(events: List[ChatEvent]) -> Dict[str, Any]:
    """Create a history message."""
    return {
        "type": MessageTypes.HISTORY,
        "messages": [event.to_dict() for event in events],
        "count": len(events)
    }


def create_event_message(event: ChatEvent) -> Dict[str, Any]:
    """Create a new-message broadcast."""
    return {
        "type": MessageTypes.MESSAGE,
        "message": event.to_dict()
    }


def create_join_success_message(identity: Identity) -> Dict[str, Any]:
    """Create a join success message."""
    return {
        "type": MessageTypes.JOIN_SUCCESS,
        "username": identity.username,
        "avatar": identity.avatar
    }


def create_join_error_message(reason: str, message: str) -> Dict[str, Any]:
    """Create a join error message."""
    return {
        "type": MessageTypes.JOIN_ERROR,
        "reason": reason,
        "message": message
    }


def create_error_message(message: str) -> Dict[str, Any]:
    """Create an error message."""
    return {
        "type": MessageTypes.ERROR,
        "message": message
    }
