# src/sid_core/protocols/sid/frame.py
"""
SID 帧编解码 (Frame Codec)

每条 SID 消息都以 4 字节帧头开始:

    [0xFF][message_type u8][total_length u16 LE]

total_length 包含帧头自身。本模块负责帧头的解析/构建、消息的组装，
以及从字节流中读取一条完整消息。
"""

import logging
import struct
from dataclasses import dataclass
from typing import Protocol

from ...exceptions import (
    BadSentinel,
    InvalidHeader,
    LengthMismatch,
    PayloadTooLarge,
    ShortRead,
    UnknownMessageType,
)
from . import constants
from .constants import MessageType

logger = logging.getLogger(__name__)


class ByteStream(Protocol):
    """状态机与帧读取器所依赖的字节流接口。"""

    async def write(self, data: bytes) -> None: ...

    async def read_exact(self, count: int) -> bytes: ...


@dataclass(frozen=True)
class SidHeader:
    """SID 帧头 (不可变)。

    Attributes:
        message_type: 消息类型代码。
        total_length: 消息总长度 (包含 4 字节帧头)。
    """

    message_type: MessageType
    total_length: int

    @classmethod
    def parse(cls, data: bytes) -> "SidHeader":
        """从消息的前 4 个字节解析帧头。

        Raises:
            InvalidHeader: 不足 4 字节。
            BadSentinel: 首字节不是 0xFF。
            UnknownMessageType: 类型字节未知。
        """
        if len(data) < constants.HEADER_LENGTH:
            raise InvalidHeader(f"帧头不完整: 仅有 {len(data)} 字节")

        sentinel = data[0]
        if sentinel != constants.HEADER_SENTINEL:
            raise BadSentinel(sentinel)

        type_code = data[constants.HEADER_TYPE_INDEX]
        try:
            message_type = MessageType(type_code)
        except ValueError:
            raise UnknownMessageType(type_code) from None

        (total_length,) = struct.unpack_from(
            "<H", data, constants.HEADER_LENGTH_OFFSET
        )
        return cls(message_type, total_length)

    @classmethod
    def for_payload(cls, message_type: MessageType, payload_length: int) -> "SidHeader":
        """根据消息体长度构建帧头。"""
        total_length = constants.HEADER_LENGTH + payload_length
        if total_length > constants.MAX_MESSAGE_LENGTH:
            raise PayloadTooLarge(total_length)
        return cls(message_type, total_length)

    @property
    def payload_length(self) -> int:
        return self.total_length - constants.HEADER_LENGTH

    def to_bytes(self) -> bytes:
        return struct.pack(
            "<BBH", constants.HEADER_SENTINEL, self.message_type, self.total_length
        )

    def validate_length(self, message: bytes) -> None:
        """校验帧头声明的长度与整条消息的实际长度一致。"""
        if self.total_length != len(message):
            raise LengthMismatch(self.total_length, len(message))


def parse_header(data: bytes) -> SidHeader:
    return SidHeader.parse(data)


def assemble(message_type: MessageType, payload: bytes) -> bytes:
    """组装一条完整消息 (帧头 + 消息体)。

    Raises:
        PayloadTooLarge: 总长度超过 65535。
    """
    header = SidHeader.for_payload(message_type, len(payload))
    return header.to_bytes() + payload


async def read_full_message(stream: ByteStream) -> bytes:
    """从字节流读取一条完整的 SID 消息。

    先读 4 字节帧头，再按声明长度读取剩余字节。

    Args:
        stream: 提供 read_exact 的字节流。

    Returns:
        bytes: 包含帧头在内的完整消息。

    Raises:
        ShortRead: 字节流提供的数据不足。
        InvalidHeader / BadSentinel / UnknownMessageType: 帧头非法。
    """
    header_bytes = await stream.read_exact(constants.HEADER_LENGTH)
    if len(header_bytes) < constants.HEADER_LENGTH:
        raise ShortRead(constants.HEADER_LENGTH, len(header_bytes))

    header = SidHeader.parse(header_bytes)
    if header.total_length < constants.HEADER_LENGTH:
        raise InvalidHeader(f"帧头声明长度 ({header.total_length}) 小于帧头本身")

    body = b""
    if header.payload_length:
        body = await stream.read_exact(header.payload_length)
        if len(body) < header.payload_length:
            raise ShortRead(header.payload_length, len(body))

    logger.debug(
        f"收到完整消息: {header.message_type.name} ({header.total_length} 字节)"
    )
    return header_bytes + body
