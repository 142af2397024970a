# src/sid_core/protocols/sid/messages.py
"""
SID 消息目录 (Message Catalog)

每种 (消息类型, 方向) 组合对应一个不可变的 dataclass。消息只有两种创建方式:

1. 解码: `Variant.parse(raw)`，严格按字段顺序读取，任何游标错误都包装为
   MalformedMessage，读完后仍有剩余字节则抛出 TrailingBytes。
2. 编码: `Variant.build(**fields)` 或高层的 `Variant.create(...)`，构建消息体、
   计算帧头，再对结果执行一次解码，因此 raw 与字段永远一致。
"""

import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, Self

from ...exceptions import (
    InvalidField,
    InvalidFileTime,
    MalformedMessage,
    MissingTerminator,
    NonAsciiText,
    TrailingBytes,
    TruncatedData,
    UnexpectedProtocolId,
    UnknownEnumValue,
)
from ...utils import BrokenSha1Hash, compute_tokenized_hash
from . import constants
from .buffers import ByteBuilder, ByteCursor
from .constants import (
    LogonStatus,
    MessageDirection,
    MessageType,
    PlatformId,
    ProductId,
)
from .frame import SidHeader, assemble
from .records import CdKeyRecord, CdKeyValues, Realm
from .revision import RevisionCheckResult

C2S = MessageDirection.CLIENT_TO_SERVER
S2C = MessageDirection.SERVER_TO_CLIENT

_CURSOR_ERRORS = (TruncatedData, MissingTerminator, NonAsciiText, UnknownEnumValue)

_FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)
_UINT64_MODULUS = 1 << 64


def filetime_to_datetime(ticks: int) -> datetime:
    """将 Windows FILETIME (100ns 刻度) 转换为 UTC 时间。

    Raises:
        InvalidFileTime: 刻度为负或超出 9999 年。
    """
    if not 0 <= ticks <= constants.MAX_FILETIME:
        raise InvalidFileTime(ticks)
    return _FILETIME_EPOCH + timedelta(
        microseconds=ticks // constants.FILETIME_TICKS_PER_MICROSECOND
    )


# =========================================================================
# 基类
# =========================================================================


@dataclass(frozen=True)
class SidMessage:
    """所有 SID 消息的基类。

    Attributes:
        raw: 包含帧头在内的完整消息字节。
    """

    raw: bytes = field(repr=False)

    message_type: ClassVar[MessageType]
    direction: ClassVar[MessageDirection]

    @classmethod
    def parse(cls, data: bytes) -> Self:
        """从完整消息字节解码。

        Raises:
            DecodeError: 帧头非法、长度不符、字段解析失败或存在多余字节。
        """
        data = bytes(data)
        header = SidHeader.parse(data)
        if header.message_type != cls.message_type:
            raise MalformedMessage(
                f"消息类型 {header.message_type.name} 与 {cls.__name__} 不符"
            )
        header.validate_length(data)

        cursor = ByteCursor(data)
        try:
            values = cls._read_fields(cursor)
        except _CURSOR_ERRORS as e:
            raise MalformedMessage(str(e)) from e

        if cursor.has_remaining:
            raise TrailingBytes(cursor.remaining)
        return cls(raw=data, **values)

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        return {}

    @classmethod
    def _finish(cls, builder: ByteBuilder) -> Self:
        return cls.parse(assemble(cls.message_type, builder.to_bytes()))

    @property
    def header(self) -> SidHeader:
        return SidHeader.parse(self.raw)

    @property
    def payload(self) -> bytes:
        return self.raw[constants.HEADER_LENGTH :]

    def fields(self) -> dict[str, Any]:
        """返回解码得到的字段 (不含 raw)，可直接传回 build()。"""
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if f.name != "raw"
        }

    def __bytes__(self) -> bytes:
        return self.raw


# =========================================================================
# SID_AUTH_INFO (0x50)
# =========================================================================


@dataclass(frozen=True)
class AuthInfoClientToServer(SidMessage):
    """客户端发起认证时上报的产品与地区信息。"""

    message_type: ClassVar[MessageType] = MessageType.AUTH_INFO
    direction: ClassVar[MessageDirection] = C2S

    protocol_id: int
    platform: PlatformId
    product: ProductId
    version: int
    product_language: str
    local_ip: bytes
    timezone_bias: int
    locale_id: int
    language_id: int
    country_abbreviation: str
    country: str

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        protocol_id = cursor.read_int32()
        if protocol_id != constants.AUTH_INFO_PROTOCOL_ID:
            raise UnexpectedProtocolId(protocol_id)
        return {
            "protocol_id": protocol_id,
            "platform": cursor.read_dword_string_as_enum(PlatformId),
            "product": cursor.read_dword_string_as_enum(ProductId),
            "version": cursor.read_int32(),
            "product_language": cursor.read_dword_string(),
            "local_ip": cursor.read_bytes(constants.IPV4_LENGTH),
            "timezone_bias": cursor.read_int32(),
            "locale_id": cursor.read_int32(),
            "language_id": cursor.read_int32(),
            "country_abbreviation": cursor.read_ascii_cstring(),
            "country": cursor.read_ascii_cstring(),
        }

    @classmethod
    def build(
        cls,
        *,
        platform: PlatformId,
        product: ProductId,
        version: int,
        product_language: str,
        local_ip: bytes,
        timezone_bias: int,
        locale_id: int,
        language_id: int,
        country_abbreviation: str,
        country: str,
        protocol_id: int = constants.AUTH_INFO_PROTOCOL_ID,
    ) -> Self:
        if protocol_id != constants.AUTH_INFO_PROTOCOL_ID:
            raise InvalidField(f"protocol_id 必须为 0，实际为 {protocol_id}")
        if len(local_ip) != constants.IPV4_LENGTH:
            raise InvalidField(f"本地 IP 必须为 4 字节，实际为 {len(local_ip)} 字节")

        builder = ByteBuilder()
        builder.append_int32(protocol_id)
        builder.append_enum_as_dword_string(platform)
        builder.append_enum_as_dword_string(product)
        builder.append_int32(version)
        builder.append_dword_string(product_language)
        builder.append_bytes(bytes(local_ip))
        builder.append_int32(timezone_bias)
        builder.append_int32(locale_id)
        builder.append_int32(language_id)
        builder.append_ascii_cstring(country_abbreviation)
        builder.append_ascii_cstring(country)
        return cls._finish(builder)


@dataclass(frozen=True)
class AuthInfoServerToClient(SidMessage):
    """服务器的认证参数: 登录方式、服务器令牌与版本校验公式。

    logon_type 保持原始整数，是否支持由状态机判断。
    """

    message_type: ClassVar[MessageType] = MessageType.AUTH_INFO
    direction: ClassVar[MessageDirection] = S2C

    logon_type: int
    server_token: int
    udp_value: int
    mpq_file_time_ticks: int
    mpq_file_name: str
    value_string: str

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        logon_type = cursor.read_int32()
        server_token = cursor.read_int32()
        udp_value = cursor.read_int32()

        # 线上是 u64，按有符号 FILETIME 解释
        ticks = cursor.read_uint64()
        if ticks >= _UINT64_MODULUS >> 1:
            ticks -= _UINT64_MODULUS
        filetime_to_datetime(ticks)

        return {
            "logon_type": logon_type,
            "server_token": server_token,
            "udp_value": udp_value,
            "mpq_file_time_ticks": ticks,
            "mpq_file_name": cursor.read_ascii_cstring(),
            "value_string": cursor.read_ascii_cstring(),
        }

    @property
    def mpq_file_time(self) -> datetime:
        return filetime_to_datetime(self.mpq_file_time_ticks)

    @classmethod
    def build(
        cls,
        *,
        logon_type: int,
        server_token: int,
        udp_value: int,
        mpq_file_time_ticks: int,
        mpq_file_name: str,
        value_string: str,
    ) -> Self:
        if not 0 <= mpq_file_time_ticks <= constants.MAX_FILETIME:
            raise InvalidField(f"无效的 FILETIME 值: {mpq_file_time_ticks}")

        builder = ByteBuilder()
        builder.append_int32(logon_type)
        builder.append_int32(server_token)
        builder.append_int32(udp_value)
        builder.append_uint64(mpq_file_time_ticks)
        builder.append_ascii_cstring(mpq_file_name)
        builder.append_ascii_cstring(value_string)
        return cls._finish(builder)


# =========================================================================
# SID_PING (0x25)
# =========================================================================


@dataclass(frozen=True)
class PingClientToServer(SidMessage):
    message_type: ClassVar[MessageType] = MessageType.PING
    direction: ClassVar[MessageDirection] = C2S

    ping_value: int

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        return {"ping_value": cursor.read_int32()}

    @classmethod
    def build(cls, *, ping_value: int) -> Self:
        builder = ByteBuilder()
        builder.append_int32(ping_value)
        return cls._finish(builder)


@dataclass(frozen=True)
class PingServerToClient(SidMessage):
    message_type: ClassVar[MessageType] = MessageType.PING
    direction: ClassVar[MessageDirection] = S2C

    ping_value: int

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        return {"ping_value": cursor.read_int32()}

    @classmethod
    def build(cls, *, ping_value: int) -> Self:
        builder = ByteBuilder()
        builder.append_int32(ping_value)
        return cls._finish(builder)


# =========================================================================
# SID_AUTH_CHECK (0x51)
# =========================================================================


@dataclass(frozen=True)
class AuthCheckClientToServer(SidMessage):
    """版本校验结果与 CD-Key 数据。"""

    message_type: ClassVar[MessageType] = MessageType.AUTH_CHECK
    direction: ClassVar[MessageDirection] = C2S

    client_token: int
    exe_version: int
    exe_hash: int
    spawn_flag: int
    key_records: tuple[CdKeyRecord, ...]
    exe_info: str
    key_owner: str

    @property
    def key_count(self) -> int:
        return len(self.key_records)

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        client_token = cursor.read_int32()
        exe_version = cursor.read_int32()
        exe_hash = cursor.read_int32()

        key_count = cursor.read_int32()
        if key_count < 0:
            raise MalformedMessage(f"CD-Key 数量为负数: {key_count}")
        spawn_flag = cursor.read_int32()

        records = []
        for _ in range(key_count):
            record = CdKeyRecord.read(cursor)
            if record.reserved != constants.CD_KEY_RESERVED_VALUE:
                raise MalformedMessage(f"CD-Key 保留字段不为 0: {record.reserved}")
            records.append(record)

        return {
            "client_token": client_token,
            "exe_version": exe_version,
            "exe_hash": exe_hash,
            "spawn_flag": spawn_flag,
            "key_records": tuple(records),
            "exe_info": cursor.read_ascii_cstring(),
            "key_owner": cursor.read_ascii_cstring(),
        }

    @classmethod
    def build(
        cls,
        *,
        client_token: int,
        exe_version: int,
        exe_hash: int,
        key_records: Sequence[CdKeyRecord],
        exe_info: str,
        key_owner: str,
        spawn_flag: int = constants.AUTH_CHECK_SPAWN_FLAG,
    ) -> Self:
        builder = ByteBuilder()
        builder.append_int32(client_token)
        builder.append_int32(exe_version)
        builder.append_int32(exe_hash)
        builder.append_int32(len(key_records))
        builder.append_int32(spawn_flag)
        for record in key_records:
            if record.reserved != constants.CD_KEY_RESERVED_VALUE:
                raise InvalidField(f"CD-Key 保留字段必须为 0: {record.reserved}")
            record.write(builder)
        builder.append_ascii_cstring(exe_info)
        builder.append_ascii_cstring(key_owner)
        return cls._finish(builder)

    @classmethod
    def create(
        cls,
        *,
        client_token: int,
        server_token: int,
        revision: RevisionCheckResult,
        key_values: Sequence[CdKeyValues],
        key_owner: str,
    ) -> Self:
        """由版本校验结果与解码后的 CD-Key 构建消息。

        Args:
            client_token: 本次认证的客户端令牌。
            server_token: AUTH_INFO (S→C) 中的服务器令牌。
            revision: 版本校验协作方的计算结果。
            key_values: 每个 CD-Key 的解码值，按发送顺序排列。
            key_owner: CD-Key 持有人名称。
        """
        records = [
            CdKeyRecord.from_key_values(client_token, server_token, values)
            for values in key_values
        ]
        return cls.build(
            client_token=client_token,
            exe_version=revision.exe_version,
            exe_hash=revision.exe_hash,
            key_records=records,
            exe_info=revision.exe_info,
            key_owner=key_owner,
        )


@dataclass(frozen=True)
class AuthCheckServerToClient(SidMessage):
    """版本/CD-Key 校验结果。result 非 0 属于认证失败而非解码失败。"""

    message_type: ClassVar[MessageType] = MessageType.AUTH_CHECK
    direction: ClassVar[MessageDirection] = S2C

    result: int
    info: str

    @property
    def passed(self) -> bool:
        return self.result == constants.AUTH_CHECK_RESULT_OK

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        return {"result": cursor.read_int32(), "info": cursor.read_ascii_cstring()}

    @classmethod
    def build(cls, *, result: int, info: str) -> Self:
        builder = ByteBuilder()
        builder.append_int32(result)
        builder.append_ascii_cstring(info)
        return cls._finish(builder)


# =========================================================================
# SID_LOGONRESPONSE2 (0x3A)
# =========================================================================


@dataclass(frozen=True)
class LogonResponse2ClientToServer(SidMessage):
    message_type: ClassVar[MessageType] = MessageType.LOGONRESPONSE2
    direction: ClassVar[MessageDirection] = C2S

    client_token: int
    server_token: int
    password_hash: BrokenSha1Hash
    account_name: str

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        return {
            "client_token": cursor.read_int32(),
            "server_token": cursor.read_int32(),
            "password_hash": cursor.read_broken_sha1_hash(),
            "account_name": cursor.read_ascii_cstring(),
        }

    @classmethod
    def build(
        cls,
        *,
        client_token: int,
        server_token: int,
        password_hash: BrokenSha1Hash,
        account_name: str,
    ) -> Self:
        builder = ByteBuilder()
        builder.append_int32(client_token)
        builder.append_int32(server_token)
        builder.append_broken_sha1_hash(password_hash)
        builder.append_ascii_cstring(account_name)
        return cls._finish(builder)

    @classmethod
    def create(
        cls, *, client_token: int, server_token: int, account_name: str, password: str
    ) -> Self:
        """使用明文密码构建，密码以 tokenized hash 形式上线。"""
        return cls.build(
            client_token=client_token,
            server_token=server_token,
            password_hash=compute_tokenized_hash(client_token, server_token, password),
            account_name=account_name,
        )


@dataclass(frozen=True)
class LogonResponse2ServerToClient(SidMessage):
    """账号登录结果。info 仅在 ACCOUNT_CLOSED 时存在。"""

    message_type: ClassVar[MessageType] = MessageType.LOGONRESPONSE2
    direction: ClassVar[MessageDirection] = S2C

    status: LogonStatus
    info: str | None = None

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        status = cursor.read_enum_int32(LogonStatus)
        info = None
        if status is LogonStatus.ACCOUNT_CLOSED:
            info = cursor.read_ascii_cstring()
        return {"status": status, "info": info}

    @classmethod
    def build(cls, *, status: LogonStatus, info: str | None = None) -> Self:
        try:
            status = LogonStatus(status)
        except ValueError:
            raise InvalidField(f"未知的登录状态码: {status!r}") from None
        if status is LogonStatus.ACCOUNT_CLOSED and info is None:
            raise InvalidField("ACCOUNT_CLOSED 状态必须附带说明字符串")
        if status is not LogonStatus.ACCOUNT_CLOSED and info is not None:
            raise InvalidField(f"{status.name} 状态不允许附带说明字符串")

        builder = ByteBuilder()
        builder.append_int32(status)
        if info is not None:
            builder.append_ascii_cstring(info)
        return cls._finish(builder)


# =========================================================================
# SID_QUERYREALMS2 (0x40)
# =========================================================================


@dataclass(frozen=True)
class QueryRealms2ClientToServer(SidMessage):
    """请求 Realm 列表。消息体为空。"""

    message_type: ClassVar[MessageType] = MessageType.QUERYREALMS2
    direction: ClassVar[MessageDirection] = C2S

    @classmethod
    def build(cls) -> Self:
        return cls._finish(ByteBuilder())


@dataclass(frozen=True)
class QueryRealms2ServerToClient(SidMessage):
    message_type: ClassVar[MessageType] = MessageType.QUERYREALMS2
    direction: ClassVar[MessageDirection] = S2C

    unknown: int
    realms: tuple[Realm, ...]

    @property
    def realm_count(self) -> int:
        return len(self.realms)

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        unknown = cursor.read_int32()
        count = cursor.read_int32()
        if count < 0:
            raise MalformedMessage(f"Realm 数量为负数: {count}")
        realms = tuple(Realm.read(cursor) for _ in range(count))
        return {"unknown": unknown, "realms": realms}

    @classmethod
    def build(cls, *, unknown: int, realms: Sequence[Realm]) -> Self:
        builder = ByteBuilder()
        builder.append_int32(unknown)
        builder.append_int32(len(realms))
        for realm in realms:
            realm.write(builder)
        return cls._finish(builder)


# =========================================================================
# SID_LOGONREALMEX (0x3E)
# =========================================================================


@dataclass(frozen=True)
class LogonRealmExClientToServer(SidMessage):
    message_type: ClassVar[MessageType] = MessageType.LOGONREALMEX
    direction: ClassVar[MessageDirection] = C2S

    client_token: int
    realm_password_hash: BrokenSha1Hash
    realm_title: str

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        return {
            "client_token": cursor.read_int32(),
            "realm_password_hash": cursor.read_broken_sha1_hash(),
            "realm_title": cursor.read_ascii_cstring(),
        }

    @classmethod
    def build(
        cls, *, client_token: int, realm_password_hash: BrokenSha1Hash, realm_title: str
    ) -> Self:
        builder = ByteBuilder()
        builder.append_int32(client_token)
        builder.append_broken_sha1_hash(realm_password_hash)
        builder.append_ascii_cstring(realm_title)
        return cls._finish(builder)

    @classmethod
    def create(cls, *, client_token: int, server_token: int, realm_title: str) -> Self:
        """Realm 密码固定为 "password"，同样以 tokenized hash 上线。"""
        return cls.build(
            client_token=client_token,
            realm_password_hash=compute_tokenized_hash(
                client_token, server_token, constants.REALM_PASSWORD
            ),
            realm_title=realm_title,
        )


@dataclass(frozen=True)
class LogonRealmExServerToClient(SidMessage):
    """Realm 登录结果与 MCP 交接数据。

    报文中没有显式的成功标志: 总长度超过 12 字节即视为成功，
    此时才包含 MCP 数据块、地址、端口与唯一名称。
    """

    message_type: ClassVar[MessageType] = MessageType.LOGONREALMEX
    direction: ClassVar[MessageDirection] = S2C

    mcp_cookie: int
    mcp_status: int
    mcp_chunk1: tuple[int, ...] | None = None
    ip_address: bytes | None = None
    port: int | None = None
    mcp_chunk2: tuple[int, ...] | None = None
    unique_name: str | None = None

    @property
    def logon_was_successful(self) -> bool:
        return len(self.raw) > constants.LOGON_REALM_EX_FAILURE_LENGTH

    @property
    def mcp_address(self) -> tuple[str, int] | None:
        """MCP 服务器的 (IP, 端口)，失败时为 None。"""
        if self.ip_address is None or self.port is None:
            return None
        return ".".join(str(b) for b in self.ip_address), self.port

    @classmethod
    def _read_fields(cls, cursor: ByteCursor) -> dict[str, Any]:
        values: dict[str, Any] = {
            "mcp_cookie": cursor.read_int32(),
            "mcp_status": cursor.read_int32(),
        }
        if cursor.has_remaining:
            values["mcp_chunk1"] = cursor.read_int32_list(constants.MCP_CHUNK1_WORDS)
            values["ip_address"] = cursor.read_bytes(constants.IPV4_LENGTH)
            values["port"] = cursor.read_int32()
            values["mcp_chunk2"] = cursor.read_int32_list(constants.MCP_CHUNK2_WORDS)
            values["unique_name"] = cursor.read_ascii_cstring()
        return values

    @classmethod
    def build(
        cls,
        *,
        mcp_cookie: int,
        mcp_status: int,
        mcp_chunk1: Sequence[int] | None = None,
        ip_address: bytes | None = None,
        port: int | None = None,
        mcp_chunk2: Sequence[int] | None = None,
        unique_name: str | None = None,
    ) -> Self:
        success_fields = (mcp_chunk1, ip_address, port, mcp_chunk2, unique_name)
        builder = ByteBuilder()
        builder.append_int32(mcp_cookie)
        builder.append_int32(mcp_status)

        if all(value is None for value in success_fields):
            return cls._finish(builder)
        if any(value is None for value in success_fields):
            raise InvalidField("成功响应必须同时提供全部 MCP 交接字段")

        if len(mcp_chunk1) != constants.MCP_CHUNK1_WORDS:
            raise InvalidField(f"mcp_chunk1 必须为 {constants.MCP_CHUNK1_WORDS} 个字")
        if len(mcp_chunk2) != constants.MCP_CHUNK2_WORDS:
            raise InvalidField(f"mcp_chunk2 必须为 {constants.MCP_CHUNK2_WORDS} 个字")
        if len(ip_address) != constants.IPV4_LENGTH:
            raise InvalidField(f"IP 地址必须为 4 字节，实际为 {len(ip_address)} 字节")

        builder.append_int32_list(mcp_chunk1)
        builder.append_bytes(bytes(ip_address))
        builder.append_int32(port)
        builder.append_int32_list(mcp_chunk2)
        builder.append_ascii_cstring(unique_name)
        return cls._finish(builder)
