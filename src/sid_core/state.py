# File: src/sid_core/state.py
"""
SID 核心库 - 状态模块

负责定义和存储所有易变的会话状态。
本模块不包含业务逻辑，仅作为数据容器供 Core 和 Strategy 共享读写。
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocols.sid.messages import LogonRealmExServerToClient
    from .protocols.sid.records import Realm


class CoreStatus(Enum):
    """核心引擎的生命周期状态枚举。

    状态流转示意:
    IDLE -> CONNECTING -> AUTHENTICATING -> AUTHENTICATED -> OFFLINE
               |                |
               v                v
             ERROR            ERROR
    """

    IDLE = auto()
    """初始状态，引擎已实例化但未执行任何操作。"""

    CONNECTING = auto()
    """正在建立 TCP 连接并发送协议选择字节。"""

    AUTHENTICATING = auto()
    """握手进行中。"""

    AUTHENTICATED = auto()
    """握手完成，已获得 MCP 交接数据。"""

    OFFLINE = auto()
    """已离线。用户主动停止，或认证被服务器拒绝。"""

    ERROR = auto()
    """错误状态。发生了网络或协议层面的不可恢复错误。"""


class HandshakeState(Enum):
    """认证握手的线性状态。FAILED 可由任意步骤进入。"""

    DISCONNECTED = auto()
    CONNECTED = auto()
    SENT_AUTH_INFO = auto()
    AWAITING_PING = auto()
    SENT_PING = auto()
    AWAITING_AUTH_INFO = auto()
    AUTH_INFO_RECEIVED = auto()
    SENT_AUTH_CHECK = auto()
    AWAITING_AUTH_CHECK = auto()
    SENT_LOGON_RESPONSE2 = auto()
    AWAITING_LOGON_RESPONSE2 = auto()
    SENT_QUERY_REALMS2 = auto()
    AWAITING_QUERY_REALMS2 = auto()
    SENT_LOGON_REALM_EX = auto()
    AWAITING_LOGON_REALM_EX = auto()
    AUTHENTICATED = auto()
    FAILED = auto()


@dataclass
class SidState:
    """存储 SID 认证会话的易变状态数据。

    该对象是非持久化的。握手失败后令牌会被清空，
    重新认证时应从新的连接开始，不要复用旧的令牌。

    Attributes:
        connected: TCP 连接是否已建立。
        server_token: AUTH_INFO (S→C) 下发的服务器令牌。
        client_token_authcheck: AUTH_CHECK / LOGONRESPONSE2 使用的客户端令牌。
        client_token_realm: LOGONREALMEX 使用的独立客户端令牌。
        handshake: 当前握手步骤。
        status: 当前核心引擎的运行状态。
        last_error: 最近一次发生的错误信息描述，用于 UI 显示。
        realms: QUERYREALMS2 返回的 Realm 列表。
        realm_logon: LOGONREALMEX 成功响应 (MCP 交接数据)。
    """

    # --- 连接与令牌 ---
    connected: bool = False
    server_token: int | None = None
    client_token_authcheck: int | None = None
    client_token_realm: int | None = None

    # --- 握手与引擎状态 ---
    handshake: HandshakeState = HandshakeState.DISCONNECTED
    status: CoreStatus = CoreStatus.IDLE
    last_error: str = ""

    # --- 握手产出 ---
    realms: tuple["Realm", ...] = field(default_factory=tuple)
    realm_logon: "LogonRealmExServerToClient | None" = None

    @property
    def is_authenticated(self) -> bool:
        return self.handshake is HandshakeState.AUTHENTICATED

    def reset_session(self) -> None:
        """清空令牌与握手产出 (不修改连接标志与引擎状态)。"""
        self.server_token = None
        self.client_token_authcheck = None
        self.client_token_realm = None
        self.realms = ()
        self.realm_logon = None
