# src/sid_core/protocols/sid/buffers.py
"""
SID 字节缓冲区 (ByteCursor / ByteBuilder)

ByteCursor 按字段顺序从一条完整消息中读取数据；ByteBuilder 以只追加的方式
构建消息体。两者一一对应，除 dword string 外所有多字节整数均为小端序。
"""

import struct
from enum import Enum
from typing import TypeVar

from ...exceptions import (
    InvalidField,
    MissingTerminator,
    NonAsciiText,
    TruncatedData,
    UnknownEnumValue,
)
from ...utils import HASH_LENGTH, BrokenSha1Hash
from . import constants

E = TypeVar("E", bound=Enum)

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_UINT64_MAX = 2**64 - 1


class ByteCursor:
    """只读游标。

    默认从偏移 4 开始 (跳过帧头)，子结构可显式传入 offset=0。
    """

    def __init__(self, data: bytes, offset: int = constants.HEADER_LENGTH) -> None:
        self._data = bytes(data)
        self._index = offset

    @property
    def remaining(self) -> int:
        return max(len(self._data) - self._index, 0)

    @property
    def has_remaining(self) -> bool:
        return self.remaining != 0

    def _take(self, count: int) -> bytes:
        if count < 0 or self.remaining < count:
            raise TruncatedData(count, self.remaining)
        chunk = self._data[self._index : self._index + count]
        self._index += count
        return chunk

    def read_bytes(self, count: int) -> bytes:
        return self._take(count)

    def read_int32(self) -> int:
        return struct.unpack("<i", self._take(constants.INT32_SIZE))[0]

    def read_int32_list(self, count: int) -> tuple[int, ...]:
        return tuple(self.read_int32() for _ in range(count))

    def read_uint64(self) -> int:
        return struct.unpack("<Q", self._take(constants.UINT64_SIZE))[0]

    def read_ascii_cstring(self) -> str:
        """读取以 0x00 结尾的 ASCII 字符串 (不含结束符)，游标越过结束符。"""
        end = self._data.find(b"\x00", self._index)
        if end == -1:
            raise MissingTerminator(f"偏移 {self._index} 之后没有找到字符串结束符")
        raw = self._data[self._index : end]
        self._index = end + 1
        try:
            return raw.decode("ascii")
        except UnicodeDecodeError as e:
            raise NonAsciiText(f"字符串包含非 ASCII 字节: {raw!r}") from e

    def read_dword_string(self) -> str:
        """读取 4 字节并反转字节序后解码 (如 b'68XI' -> 'IX86')。"""
        raw = self._take(constants.DWORD_STRING_LENGTH)[::-1]
        try:
            return raw.decode("ascii")
        except UnicodeDecodeError as e:
            raise NonAsciiText(f"dword string 包含非 ASCII 字节: {raw!r}") from e

    def read_enum_int32(self, enum_cls: type[E]) -> E:
        value = self.read_int32()
        try:
            return enum_cls(value)
        except ValueError:
            raise UnknownEnumValue(enum_cls.__name__, value) from None

    def read_dword_string_as_enum(self, enum_cls: type[E]) -> E:
        """按成员名 (大小写不敏感) 匹配 dword string。"""
        text = self.read_dword_string()
        member = enum_cls.__members__.get(text.upper())
        if member is None:
            raise UnknownEnumValue(enum_cls.__name__, text)
        return member

    def read_broken_sha1_hash(self) -> BrokenSha1Hash:
        return BrokenSha1Hash(self._take(HASH_LENGTH))


class ByteBuilder:
    """只追加的消息体构建器。"""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)

    def append_bytes(self, value: bytes) -> None:
        self._buffer.extend(value)

    def append_int32(self, value: int) -> None:
        if not _INT32_MIN <= value <= _INT32_MAX:
            raise InvalidField(f"{value} 超出 32 位有符号整数范围")
        self._buffer.extend(struct.pack("<i", value))

    def append_int32_list(self, values: tuple[int, ...] | list[int]) -> None:
        for value in values:
            self.append_int32(value)

    def append_uint64(self, value: int) -> None:
        if not 0 <= value <= _UINT64_MAX:
            raise InvalidField(f"{value} 超出 64 位无符号整数范围")
        self._buffer.extend(struct.pack("<Q", value))

    def append_ascii_cstring(self, value: str) -> None:
        """追加 ASCII 字符串并总是追加 0x00 结束符 (即使原串已含结束符)。"""
        try:
            raw = value.encode("ascii")
        except UnicodeEncodeError as e:
            raise InvalidField(f"字符串包含非 ASCII 字符: {value!r}") from e
        self._buffer.extend(raw)
        self._buffer.append(0x00)

    def append_dword_string(self, value: str) -> None:
        if len(value) != constants.DWORD_STRING_LENGTH:
            raise InvalidField(f"dword string '{value}' 长度为 {len(value)}，不是 4")
        try:
            raw = value.encode("ascii")
        except UnicodeEncodeError as e:
            raise InvalidField(f"dword string 包含非 ASCII 字符: {value!r}") from e
        self._buffer.extend(raw[::-1])

    def append_enum_as_dword_string(self, value: Enum) -> None:
        self.append_dword_string(value.name.upper())

    def append_broken_sha1_hash(self, value: BrokenSha1Hash) -> None:
        self._buffer.extend(value.digest)
