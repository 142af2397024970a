# src/sid_core/protocols/sid/dispatch.py
"""
SID 消息分发 (Dispatch)

根据 (方向, 帧头类型) 从封闭的查找表中选择对应的消息类并解码。
"""

from ...exceptions import UnsupportedMessageType
from .constants import MessageDirection, MessageType
from .frame import parse_header
from .messages import (
    AuthCheckClientToServer,
    AuthCheckServerToClient,
    AuthInfoClientToServer,
    AuthInfoServerToClient,
    LogonRealmExClientToServer,
    LogonRealmExServerToClient,
    LogonResponse2ClientToServer,
    LogonResponse2ServerToClient,
    PingClientToServer,
    PingServerToClient,
    QueryRealms2ClientToServer,
    QueryRealms2ServerToClient,
    SidMessage,
)

MESSAGE_CLASSES: dict[tuple[MessageDirection, MessageType], type[SidMessage]] = {
    (cls.direction, cls.message_type): cls
    for cls in (
        AuthInfoClientToServer,
        AuthInfoServerToClient,
        PingClientToServer,
        PingServerToClient,
        AuthCheckClientToServer,
        AuthCheckServerToClient,
        LogonResponse2ClientToServer,
        LogonResponse2ServerToClient,
        QueryRealms2ClientToServer,
        QueryRealms2ServerToClient,
        LogonRealmExClientToServer,
        LogonRealmExServerToClient,
    )
}


def decode(direction: MessageDirection, data: bytes) -> SidMessage:
    """解码一条完整消息。

    Args:
        direction: 消息流向。
        data: 包含帧头的完整消息字节。

    Returns:
        SidMessage: 对应的具体消息对象。

    Raises:
        UnsupportedMessageType: 类型已知但当前配置没有实现。
        DecodeError: 其余解码错误。
    """
    header = parse_header(data)
    message_cls = MESSAGE_CLASSES.get((direction, header.message_type))
    if message_cls is None:
        raise UnsupportedMessageType(header.message_type, direction)
    return message_cls.parse(data)


def decode_server_message(data: bytes) -> SidMessage:
    return decode(MessageDirection.SERVER_TO_CLIENT, data)


def decode_client_message(data: bytes) -> SidMessage:
    return decode(MessageDirection.CLIENT_TO_SERVER, data)
