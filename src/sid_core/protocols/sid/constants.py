# src/sid_core/protocols/sid/constants.py
"""
SID 协议常量表 (Constants)

仅定义协议的结构性常量（如消息代码、帧头偏移、线上枚举）。
不包含任何默认策略值（如默认版本号、默认国家），这些应由 Config/Strategy 注入。
"""

from enum import Enum, IntEnum, auto


# =========================================================================
# 消息代码 (Message Codes)
# =========================================================================
class MessageType(IntEnum):
    """帧头第 2 字节的消息类型代码。

    只有 PING / LOGONRESPONSE2 / LOGONREALMEX / QUERYREALMS2 / AUTH_INFO /
    AUTH_CHECK 在本协议配置中有编解码实现，其余代码仅用于识别。
    """

    NULL = 0x00
    ENTERCHAT = 0x0A
    GETCHANNELLIST = 0x0B
    JOINCHANNEL = 0x0C
    CHATCOMMAND = 0x0E
    CHATEVENT = 0x0F
    PING = 0x25
    LOGONRESPONSE = 0x29
    GETFILETIME = 0x33
    LOGONRESPONSE2 = 0x3A
    LOGONREALMEX = 0x3E
    QUERYREALMS2 = 0x40
    AUTH_INFO = 0x50
    AUTH_CHECK = 0x51


class MessageDirection(Enum):
    """消息流向。"""

    CLIENT_TO_SERVER = auto()
    SERVER_TO_CLIENT = auto()


# =========================================================================
# 帧结构 (Frame)
# =========================================================================
HEADER_SENTINEL = 0xFF
HEADER_LENGTH = 4
HEADER_TYPE_INDEX = 1
HEADER_LENGTH_OFFSET = 2
MAX_MESSAGE_LENGTH = 0xFFFF

# TCP 连接建立后、第一条消息之前发送的协议选择字节 (0x01 = 游戏协议)
PROTOCOL_SELECTOR = b"\x01"

# =========================================================================
# 字段长度 (Field Sizes)
# =========================================================================
INT32_SIZE = 4
UINT64_SIZE = 8
DWORD_STRING_LENGTH = 4
IPV4_LENGTH = 4
BROKEN_SHA1_HASH_LENGTH = 20
CD_KEY_RECORD_LENGTH = 4 * INT32_SIZE + BROKEN_SHA1_HASH_LENGTH

# LogonRealmEx (S→C): 失败包只包含 Header + Cookie + Status
LOGON_REALM_EX_FAILURE_LENGTH = HEADER_LENGTH + 2 * INT32_SIZE
MCP_CHUNK1_WORDS = 2
MCP_CHUNK2_WORDS = 12

# =========================================================================
# 握手参数 (Handshake)
# =========================================================================
AUTH_INFO_PROTOCOL_ID = 0
AUTH_CHECK_SPAWN_FLAG = 0
CD_KEY_RESERVED_VALUE = 0
AUTH_CHECK_RESULT_OK = 0
REQUIRED_REALM_COUNT = 1

# 登录 Realm 时使用的固定“密码”
REALM_PASSWORD = "password"

# =========================================================================
# 时间 (Windows FILETIME)
# =========================================================================
# FILETIME = 自 1601-01-01 UTC 起的 100ns 刻度数。上限对应 9999-12-31 23:59:59.9999999
FILETIME_TICKS_PER_MICROSECOND = 10
MAX_FILETIME = 0x24C85A5ED1C03FFF


# =========================================================================
# 线上枚举 (Wire Enums)
# =========================================================================
class LogonType(IntEnum):
    """AUTH_INFO (S→C) 中服务器要求的登录方式。本库仅实现 BROKEN_SHA1。"""

    BROKEN_SHA1 = 0
    NLS_V1 = 1
    NLS_V2 = 2


class LogonStatus(IntEnum):
    """LOGONRESPONSE2 (S→C) 状态码。"""

    SUCCESS = 0
    ACCOUNT_DOES_NOT_EXIST = 1
    INVALID_PASSWORD = 2
    ACCOUNT_CLOSED = 6


class PlatformId(Enum):
    """平台标识 (dword string)。成员名即线上文本。"""

    IX86 = auto()
    PMAC = auto()
    XMAC = auto()


class ProductId(Enum):
    """产品标识 (dword string)。成员名即线上文本。"""

    D2DV = auto()
    D2XP = auto()
