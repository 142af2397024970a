"""
SID 认证策略 (Strategy) [Asyncio Edition]

职责：
1. 流程编排：AuthInfo -> Ping -> AuthCheck -> LogonResponse2 -> QueryRealms2 -> LogonRealmEx。
2. 状态维护：逐步推进 HandshakeState，失败时进入 FAILED 并清空令牌。
3. 语义校验：将服务器的拒绝响应转换为对应的 AuthError / ProtocolError。

严格的一问一答: 每一步都 await 完成后才开始下一步，不做流水线发送。
"""

import inspect
import secrets
import struct
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

from ...exceptions import (
    AuthenticationRejected,
    LogonRejected,
    ProtocolError,
    RealmLogonFailed,
    SidError,
    StateError,
    UnexpectedMessageType,
    UnexpectedRealmCount,
    UnsupportedLogonType,
)
from ...state import HandshakeState
from ..base import BaseProtocol
from . import constants, dispatch
from .constants import LogonStatus, LogonType, MessageDirection
from .frame import read_full_message
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
from .records import Realm
from .revision import CdKeyDecoder, RevisionChecker, extract_mpq_number

if TYPE_CHECKING:
    from ...config import SidConfig
    from ...state import SidState
    from .frame import ByteStream

MessageObserver = Callable[[MessageDirection, SidMessage], Any | Awaitable[Any]]

M = TypeVar("M", bound=SidMessage)


def generate_client_token() -> int:
    """生成随机的有符号 32 位客户端令牌。"""
    return struct.unpack("<i", secrets.token_bytes(4))[0]


class SidProtocol(BaseProtocol):
    """Broken SHA-1 登录方式的 SID 认证策略 (Async)。"""

    def __init__(
        self,
        config: "SidConfig",
        state: "SidState",
        stream: "ByteStream",
        revision_checker: RevisionChecker,
        key_decoder: CdKeyDecoder,
        message_observer: MessageObserver | None = None,
    ) -> None:
        """初始化协议策略。

        Args:
            config: 全局配置对象。
            state: 共享状态对象。
            stream: 已连接并已发送协议选择字节的字节流。
            revision_checker: 版本校验协作方。
            key_decoder: CD-Key 解码协作方。
            message_observer: 可选的观察者，每次收发后以 (方向, 消息) 调用。
        """
        super().__init__(config, state, stream)
        self.revision_checker = revision_checker
        self.key_decoder = key_decoder
        self.message_observer = message_observer
        self.logger.info(f"SID 认证策略已加载 (Account: {config.account_name})")

    async def login(self, full_login: bool = True) -> bool:
        """执行认证握手。

        Args:
            full_login: 为 False 时在收到 AUTH_INFO (S→C) 后停止。

        Returns:
            bool: 握手完成返回 True (失败总是以异常形式抛出)。

        Raises:
            StateError: 连接尚未建立。
            AuthError: 服务器拒绝了版本/CD-Key、账号或 Realm 登录。
            ProtocolError: 收到非预期的消息或不支持的登录方式。
            NetworkError: 读写字节流失败。
        """
        if not self.state.connected:
            raise StateError("连接尚未建立，无法开始认证")

        self.logger.info("开始 SID 认证握手...")
        self.state.reset_session()
        self._transition(HandshakeState.CONNECTED)

        try:
            auth_info = await self._exchange_auth_info()
            if not full_login:
                self._transition(HandshakeState.AUTH_INFO_RECEIVED)
                self.logger.info("已获取服务器认证参数 (非完整登录，到此为止)。")
                return True

            await self._auth_check(auth_info)
            await self._logon_account()
            realm = await self._query_realms()
            await self._logon_realm(realm)

        except SidError as e:
            self.logger.error(f"认证握手中断 ({self.state.handshake.name}): {e}")
            self._transition(HandshakeState.FAILED)
            self.state.reset_session()
            raise

        self._transition(HandshakeState.AUTHENTICATED)
        self.logger.info(f"认证成功，已登录 Realm '{realm.title}'。")
        return True

    # =========================================================================
    # 握手步骤
    # =========================================================================

    async def _exchange_auth_info(self) -> AuthInfoServerToClient:
        """AUTH_INFO (C→S) -> PING 回显 -> AUTH_INFO (S→C)。"""
        await self._send(
            AuthInfoClientToServer.build(
                platform=self.config.platform,
                product=self.config.product,
                version=self.config.version,
                product_language=self.config.product_language,
                local_ip=self.config.local_ip_bytes,
                timezone_bias=self.config.timezone_bias,
                locale_id=self.config.locale_id,
                language_id=self.config.language_id,
                country_abbreviation=self.config.country_abbreviation,
                country=self.config.country,
            ),
            HandshakeState.SENT_AUTH_INFO,
        )

        ping = await self._receive(PingServerToClient, HandshakeState.AWAITING_PING)
        await self._send(
            PingClientToServer.build(ping_value=ping.ping_value),
            HandshakeState.SENT_PING,
        )

        auth_info = await self._receive(
            AuthInfoServerToClient, HandshakeState.AWAITING_AUTH_INFO
        )
        if auth_info.logon_type != LogonType.BROKEN_SHA1:
            raise UnsupportedLogonType(auth_info.logon_type)

        self.state.server_token = auth_info.server_token
        self.logger.debug(
            f"服务器令牌: 0x{auth_info.server_token & 0xFFFFFFFF:08X}, "
            f"MPQ: {auth_info.mpq_file_name} ({auth_info.mpq_file_time.isoformat()})"
        )
        return auth_info

    async def _auth_check(self, auth_info: AuthInfoServerToClient) -> None:
        """版本校验 + CD-Key 校验。"""
        client_token = generate_client_token()
        self.state.client_token_authcheck = client_token

        mpq_number = extract_mpq_number(auth_info.mpq_file_name)
        try:
            revision = self.revision_checker(
                auth_info.value_string, self.config.file_triple, mpq_number
            )
            key_values = [self.key_decoder(key) for key in self.config.cd_keys]
        except SidError:
            raise
        except Exception as e:
            raise ProtocolError(f"版本校验或 CD-Key 解码失败: {e}") from e

        await self._send(
            AuthCheckClientToServer.create(
                client_token=client_token,
                server_token=auth_info.server_token,
                revision=revision,
                key_values=key_values,
                key_owner=self.config.cd_key_owner,
            ),
            HandshakeState.SENT_AUTH_CHECK,
        )

        result = await self._receive(
            AuthCheckServerToClient, HandshakeState.AWAITING_AUTH_CHECK
        )
        if not result.passed:
            raise AuthenticationRejected(result.result, result.info)

    async def _logon_account(self) -> None:
        await self._send(
            LogonResponse2ClientToServer.create(
                client_token=self._require(self.state.client_token_authcheck),
                server_token=self._require(self.state.server_token),
                account_name=self.config.account_name,
                password=self.config.password,
            ),
            HandshakeState.SENT_LOGON_RESPONSE2,
        )

        response = await self._receive(
            LogonResponse2ServerToClient, HandshakeState.AWAITING_LOGON_RESPONSE2
        )
        if response.status is not LogonStatus.SUCCESS:
            raise LogonRejected(response.status, response.info)

    async def _query_realms(self) -> Realm:
        await self._send(
            QueryRealms2ClientToServer.build(), HandshakeState.SENT_QUERY_REALMS2
        )

        response = await self._receive(
            QueryRealms2ServerToClient, HandshakeState.AWAITING_QUERY_REALMS2
        )
        if response.realm_count != constants.REQUIRED_REALM_COUNT:
            raise UnexpectedRealmCount(response.realm_count)
        self.state.realms = response.realms
        return response.realms[0]

    async def _logon_realm(self, realm: Realm) -> None:
        client_token = generate_client_token()
        self.state.client_token_realm = client_token

        await self._send(
            LogonRealmExClientToServer.create(
                client_token=client_token,
                server_token=self._require(self.state.server_token),
                realm_title=realm.title,
            ),
            HandshakeState.SENT_LOGON_REALM_EX,
        )

        response = await self._receive(
            LogonRealmExServerToClient, HandshakeState.AWAITING_LOGON_REALM_EX
        )
        if not response.logon_was_successful:
            raise RealmLogonFailed(response.mcp_status)
        self.state.realm_logon = response

    # =========================================================================
    # 收发辅助
    # =========================================================================

    async def _send(self, message: SidMessage, sent_state: HandshakeState) -> None:
        self.logger.debug(
            f"发送 {message.message_type.name} ({len(message.raw)} 字节): "
            f"{message.raw.hex(' ')}"
        )
        await self.stream.write(message.raw)
        self._transition(sent_state)
        await self._notify(MessageDirection.CLIENT_TO_SERVER, message)

    async def _receive(self, expected: type[M], awaiting_state: HandshakeState) -> M:
        self._transition(awaiting_state)
        raw = await read_full_message(self.stream)
        message = dispatch.decode(MessageDirection.SERVER_TO_CLIENT, raw)
        self.logger.debug(
            f"收到 {message.message_type.name} ({len(raw)} 字节): {raw.hex(' ')}"
        )
        await self._notify(MessageDirection.SERVER_TO_CLIENT, message)

        if not isinstance(message, expected):
            raise UnexpectedMessageType(expected.message_type, message.message_type)
        return message

    async def _notify(self, direction: MessageDirection, message: SidMessage) -> None:
        """调用观察者。观察者的异常只记录日志，不影响握手。"""
        if self.message_observer is None:
            return
        try:
            result = self.message_observer(direction, message)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.logger.error(f"消息观察者执行异常: {e}")

    def _transition(self, new_state: HandshakeState) -> None:
        self.logger.debug(f"握手状态: {self.state.handshake.name} -> {new_state.name}")
        self.state.handshake = new_state

    @staticmethod
    def _require(token: int | None) -> int:
        if token is None:
            raise StateError("握手令牌缺失 (步骤顺序错误)")
        return token
