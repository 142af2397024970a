# File: src/sid_core/exceptions.py
"""
SID 核心库 - 异常体系 (Exceptions)

定义库内统一使用的异常类，以便上层应用（如 CLI/GUI）能进行精细的错误处理。

层级概览:
    SidError
    ├── ConfigError
    ├── StateError
    ├── NetworkError (ConnectionFailure / TransportFailure / ShortRead)
    ├── ProtocolError (DecodeError / EncodeError / 握手语义错误)
    └── AuthError (AuthenticationRejected / LogonRejected / RealmLogonFailed)
"""

from enum import IntEnum
from typing import Any


class SidError(Exception):
    """SID 核心库的所有内部异常的基类。

    上层应用可以通过捕获此异常来处理所有由 sid-core 抛出的已知错误。
    """

    pass


class ConfigError(SidError):
    """配置加载或校验失败。

    触发场景:
    1. 缺少必要字段 (如 account_name/password)。
    2. 字段格式错误 (如 IP 地址非法、文件三元组数量不为 3)。
    3. 找不到配置文件或环境变量。
    """

    pass


class StateError(SidError):
    """状态机错误 (FSM Violation)。

    触发场景:
    1. 在未连接状态下尝试认证。
    2. 在已连接状态下重复连接。
    """

    pass


# =========================================================================
# 网络层 (I/O 级别)
# =========================================================================


class NetworkError(SidError):
    """网络层面的错误 (I/O 级别)。

    无论发生在哪一步，都会终止当前握手，本库不做自动重试。
    """

    pass


class ConnectionFailure(NetworkError):
    """TCP 连接建立失败，或连接后发送协议选择字节失败。"""

    pass


class TransportFailure(NetworkError):
    """已建立连接上的读写失败 (超时、连接被重置等)。"""

    pass


class ShortRead(TransportFailure):
    """数据流提供的字节数少于帧头声明所需的字节数。"""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"读取字节不足: 需要 {expected} 字节，实际 {actual} 字节")
        self.expected = expected
        self.actual = actual


# =========================================================================
# 协议层 (逻辑级别)
# =========================================================================


class ProtocolError(SidError):
    """协议交互错误 (逻辑级别)。

    触发场景:
    1. 数据包结构损坏 (解码错误)。
    2. 高层字段非法导致无法编码。
    3. 收到非预期的消息类型或不支持的登录方式。
    """

    pass


class DecodeError(ProtocolError):
    """字节流无法解码为合法的 SID 消息。

    对网络输入而言这是常规情况，调用方应将其视为“拒收该消息”。
    """

    pass


class TruncatedData(DecodeError):
    """剩余字节不足以读取请求的字段。"""

    def __init__(self, requested: int, remaining: int) -> None:
        super().__init__(f"剩余字节 ({remaining}) 不足以读取 {requested} 字节")
        self.requested = requested
        self.remaining = remaining


class MissingTerminator(DecodeError):
    """C 字符串在缓冲区结束前没有找到 0x00 结束符。"""

    pass


class NonAsciiText(DecodeError):
    """字符串字段包含非 ASCII 字节。"""

    pass


class UnknownEnumValue(DecodeError):
    """读取到的值不属于对应枚举的已知取值。"""

    def __init__(self, enum_name: str, value: Any) -> None:
        super().__init__(f"值 {value!r} 不是 {enum_name} 的合法取值")
        self.enum_name = enum_name
        self.value = value


class InvalidHeader(DecodeError):
    """帧头不完整或声明的长度非法。"""

    pass


class BadSentinel(DecodeError):
    """帧头首字节不是 0xFF。"""

    def __init__(self, sentinel: int) -> None:
        super().__init__(f"帧头首字节 (0x{sentinel:02X}) 不是 0xFF")
        self.sentinel = sentinel


class UnknownMessageType(DecodeError):
    """帧头中的类型字节不是任何已知的 SID 消息类型。"""

    def __init__(self, type_code: int) -> None:
        super().__init__(f"未知的 SID 消息类型: 0x{type_code:02X}")
        self.type_code = type_code


class LengthMismatch(DecodeError):
    """帧头声明的总长度与实际字节数不一致。"""

    def __init__(self, declared: int, actual: int) -> None:
        super().__init__(f"帧头声明长度 ({declared}) 与实际长度 ({actual}) 不一致")
        self.declared = declared
        self.actual = actual


class MalformedMessage(DecodeError):
    """按字段顺序解析消息体时失败。

    原始的游标错误 (TruncatedData 等) 通过 __cause__ 保留。
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"消息解析失败: {reason}")
        self.reason = reason


class TrailingBytes(DecodeError):
    """所有声明字段读取完毕后仍有多余字节。"""

    def __init__(self, count: int) -> None:
        super().__init__(f"消息末尾存在 {count} 个多余字节")
        self.count = count


class UnexpectedProtocolId(DecodeError):
    """AuthInfo(C→S) 的 protocol_id 不为 0。"""

    def __init__(self, protocol_id: int) -> None:
        super().__init__(f"protocol_id ({protocol_id}) 不为 0")
        self.protocol_id = protocol_id


class InvalidFileTime(DecodeError):
    """MPQ 文件时间无法映射为合法的日历时间。"""

    def __init__(self, ticks: int) -> None:
        super().__init__(f"无效的 FILETIME 值: {ticks}")
        self.ticks = ticks


class UnsupportedMessageType(DecodeError):
    """消息类型已知，但当前协议配置没有为该方向注册解码器。"""

    def __init__(self, message_type: Any, direction: Any) -> None:
        super().__init__(f"不支持的消息: {message_type!r} ({direction!r})")
        self.message_type = message_type
        self.direction = direction


class EncodeError(ProtocolError):
    """高层字段非法，无法编码为 SID 消息。在写出任何字节之前抛出。"""

    pass


class InvalidField(EncodeError):
    """字段缺失、长度错误或数值越界。"""

    pass


class PayloadTooLarge(EncodeError):
    """消息总长度超过 16 位长度字段的上限 (65535)。"""

    def __init__(self, total_length: int) -> None:
        super().__init__(f"消息总长度 ({total_length}) 超过 65535 字节")
        self.total_length = total_length


class UnexpectedMessageType(ProtocolError):
    """握手当前步骤收到了非预期类型的消息。"""

    def __init__(self, expected: Any, actual: Any) -> None:
        super().__init__(f"期望收到 {expected!r}，实际收到 {actual!r}")
        self.expected = expected
        self.actual = actual


class UnsupportedLogonType(ProtocolError):
    """服务器要求的登录方式不是 Broken SHA-1。"""

    def __init__(self, logon_type: int) -> None:
        super().__init__(f"不支持的登录方式: {logon_type}")
        self.logon_type = logon_type


class UnexpectedRealmCount(ProtocolError):
    """QueryRealms2 返回的 Realm 数量不是 1。"""

    def __init__(self, count: int) -> None:
        super().__init__(f"Realm 数量为 {count}，当前配置仅支持恰好 1 个")
        self.count = count


# =========================================================================
# 认证层 (业务级别)
# =========================================================================


class AuthCheckResult(IntEnum):
    """SID_AUTH_CHECK (S→C) 结果码枚举。

    0x2xx 区段中，低 4 位之上的 0x010 标志表示出问题的是资料片 CD-Key。
    """

    PASSED = 0x000
    OLD_GAME_VERSION = 0x100
    INVALID_VERSION = 0x101
    VERSION_MUST_DOWNGRADE = 0x102
    INVALID_CD_KEY = 0x200
    CD_KEY_IN_USE = 0x201
    CD_KEY_BANNED = 0x202
    WRONG_PRODUCT = 0x203
    INVALID_EXP_CD_KEY = 0x210
    EXP_CD_KEY_IN_USE = 0x211
    EXP_CD_KEY_BANNED = 0x212
    EXP_WRONG_PRODUCT = 0x213

    @property
    def description(self) -> str:
        """获取结果码对应的人类可读中文描述。"""
        _DESC_MAP = {
            0x000: "校验通过",
            0x100: "游戏版本过旧 (需要升级)",
            0x101: "游戏版本无效",
            0x102: "游戏版本需要降级",
            0x200: "CD-Key 无效",
            0x201: "CD-Key 正在被使用",
            0x202: "CD-Key 已被封禁",
            0x203: "CD-Key 与产品不匹配",
            0x210: "资料片 CD-Key 无效",
            0x211: "资料片 CD-Key 正在被使用",
            0x212: "资料片 CD-Key 已被封禁",
            0x213: "资料片 CD-Key 与产品不匹配",
        }
        return _DESC_MAP.get(self.value, f"未知校验结果 (Code: {hex(self.value)})")


class AuthError(SidError):
    """认证被拒绝 (业务层面的失败)。

    这通常意味着不可恢复的配置错误 (如密码错、CD-Key 被封)，需要用户干预。
    """

    pass


class AuthenticationRejected(AuthError):
    """SID_AUTH_CHECK 结果非 0 (版本校验或 CD-Key 校验失败)。"""

    def __init__(self, result: int, info: str = "") -> None:
        """初始化认证错误。

        Args:
            result: 服务器返回的原始结果码。构造函数会尝试将其转换为
                AuthCheckResult 枚举，并使用标准化的中文描述。
            info: 服务器附带的说明字符串 (如占用该 Key 的用户名)。
        """
        self.result_enum: AuthCheckResult | None = None
        message = f"版本/CD-Key 校验失败 (Code: {hex(result)})"
        try:
            self.result_enum = AuthCheckResult(result)
            message = self.result_enum.description
        except ValueError:
            pass
        if info:
            message = f"{message}: {info}"

        super().__init__(message)
        self.result = result
        self.info = info


class LogonRejected(AuthError):
    """SID_LOGONRESPONSE2 状态不是 Success。"""

    def __init__(self, status: Any, info: str | None = None) -> None:
        message = f"账号登录被拒绝: {status!r}"
        if info:
            message = f"{message} ({info})"
        super().__init__(message)
        self.status = status
        self.info = info


class RealmLogonFailed(AuthError):
    """SID_LOGONREALMEX 未返回 MCP 交接数据。"""

    def __init__(self, mcp_status: int) -> None:
        super().__init__(f"Realm 登录失败 (MCP 状态码: 0x{mcp_status & 0xFFFFFFFF:08X})")
        self.mcp_status = mcp_status
