# src/sid_core/protocols/sid/records.py
"""
SID 消息中的重复子结构 (Records)

- CdKeyRecord: AUTH_CHECK (C→S) 中每个 CD-Key 的 36 字节数据块。
- Realm: QUERYREALMS2 (S→C) 中的 Realm 条目。
- FileTriple: 版本校验所需的 (主程序, 库 1, 库 2) 文件路径三元组。
- CdKeyValues: CD-Key 解码器的输出。
"""

import struct
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from ...exceptions import (
    ConfigError,
    InvalidField,
    MalformedMessage,
    TrailingBytes,
    TruncatedData,
)
from ...utils import BrokenSha1Hash, broken_sha1
from . import constants
from .buffers import ByteBuilder, ByteCursor


@dataclass(frozen=True)
class CdKeyValues:
    """CD-Key 解码结果。

    Attributes:
        key_length: 原始 Key 的字符数。
        product_value: 产品值。
        public_value: 公开值 (随报文发送)。
        private_value: 私有值 (只参与哈希，从不上线)。
    """

    key_length: int
    product_value: int
    public_value: int
    private_value: int


@dataclass(frozen=True)
class CdKeyRecord:
    """AUTH_CHECK 中单个 CD-Key 的数据块 (36 字节)。"""

    key_length: int
    product_value: int
    public_value: int
    reserved: int
    key_hash: BrokenSha1Hash

    @classmethod
    def from_key_values(
        cls, client_token: int, server_token: int, values: CdKeyValues
    ) -> "CdKeyRecord":
        """根据解码后的 Key 与双方令牌生成数据块。

        key_hash = BrokenSha1(client ++ server ++ product ++ public ++ 0 ++ private)
        """
        try:
            hashed = struct.pack(
                "<iiiiii",
                client_token,
                server_token,
                values.product_value,
                values.public_value,
                constants.CD_KEY_RESERVED_VALUE,
                values.private_value,
            )
        except struct.error as e:
            raise InvalidField(f"CD-Key 数值超出 32 位范围: {e}") from e

        return cls(
            key_length=values.key_length,
            product_value=values.product_value,
            public_value=values.public_value,
            reserved=constants.CD_KEY_RESERVED_VALUE,
            key_hash=BrokenSha1Hash(broken_sha1(hashed)),
        )

    @classmethod
    def read(cls, cursor: ByteCursor) -> "CdKeyRecord":
        return cls(
            key_length=cursor.read_int32(),
            product_value=cursor.read_int32(),
            public_value=cursor.read_int32(),
            reserved=cursor.read_int32(),
            key_hash=cursor.read_broken_sha1_hash(),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "CdKeyRecord":
        """从独立的 36 字节数据解析。"""
        cursor = ByteCursor(data, offset=0)
        try:
            record = cls.read(cursor)
        except TruncatedData as e:
            raise MalformedMessage(str(e)) from e
        if cursor.has_remaining:
            raise TrailingBytes(cursor.remaining)
        return record

    def write(self, builder: ByteBuilder) -> None:
        builder.append_int32(self.key_length)
        builder.append_int32(self.product_value)
        builder.append_int32(self.public_value)
        builder.append_int32(self.reserved)
        builder.append_broken_sha1_hash(self.key_hash)

    def to_bytes(self) -> bytes:
        builder = ByteBuilder()
        self.write(builder)
        return builder.to_bytes()


@dataclass(frozen=True)
class Realm:
    """QUERYREALMS2 返回的 Realm 条目。"""

    unknown: int
    title: str
    description: str

    @classmethod
    def read(cls, cursor: ByteCursor) -> "Realm":
        return cls(
            unknown=cursor.read_int32(),
            title=cursor.read_ascii_cstring(),
            description=cursor.read_ascii_cstring(),
        )

    def write(self, builder: ByteBuilder) -> None:
        builder.append_int32(self.unknown)
        builder.append_ascii_cstring(self.title)
        builder.append_ascii_cstring(self.description)


@dataclass(frozen=True)
class FileTriple:
    """版本校验使用的有序文件三元组。顺序有意义，不可调换。"""

    executable: Path
    library1: Path
    library2: Path

    @classmethod
    def from_paths(cls, paths: Iterable[str | Path]) -> "FileTriple":
        """从任意可迭代对象构建，元素数量必须恰为 3。

        Raises:
            ConfigError: 元素数量不是 3。
        """
        items = [Path(p) for p in paths]
        if len(items) != 3:
            raise ConfigError(f"文件三元组需要恰好 3 个路径，实际为 {len(items)} 个")
        return cls(*items)

    def __iter__(self):
        return iter((self.executable, self.library1, self.library2))
