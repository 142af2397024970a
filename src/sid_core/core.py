# File: src/sid_core/core.py
"""
SID 核心引擎 (Core Engine)

职责：
1. 资源组装：State + Connection + Config + 协作方。
2. 策略分发。
3. 生命周期：Connect -> Login -> Stop。
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

from .config import SidConfig
from .exceptions import AuthError, ConfigError, SidError, StateError
from .network import SidConnection
from .protocols.base import BaseProtocol
from .protocols.sid import SidProtocol
from .protocols.sid.revision import CdKeyDecoder, RevisionChecker
from .protocols.sid.strategy import MessageObserver
from .state import CoreStatus, HandshakeState, SidState

logger = logging.getLogger(__name__)

# 定义回调函数类型别名：支持同步或异步函数
StatusCallback = Callable[[CoreStatus, str], Any | Awaitable[Any]]

_UNSPECIFIED_IP = b"\x00" * 4


class SidCore:
    """SID 认证核心引擎 (Async)。"""

    def __init__(
        self,
        config: SidConfig,
        revision_checker: RevisionChecker,
        key_decoder: CdKeyDecoder,
        status_callback: StatusCallback | None = None,
        message_observer: MessageObserver | None = None,
    ) -> None:
        """初始化核心引擎。

        Args:
            config: 全局配置对象。
            revision_checker: 版本校验协作方。
            key_decoder: CD-Key 解码协作方。
            status_callback: 初始状态回调。也可以之后使用 add_listener 注册。
            message_observer: 可选的消息观察者，每次收发后调用。
        """
        self.config = config
        self.revision_checker = revision_checker
        self.key_decoder = key_decoder
        self.message_observer = message_observer

        self._listeners: list[StatusCallback] = []
        self._listener_tasks: set[asyncio.Task[Any]] = set()
        if status_callback:
            self.add_listener(status_callback)

        try:
            self._state = SidState()
            self.connection = SidConnection(config)
        except Exception as e:
            raise ConfigError(f"组件初始化失败: {e}") from e

        self.protocol: BaseProtocol | None = None

        self._update_status(CoreStatus.IDLE, "引擎已就绪")

    @property
    def state(self) -> SidState:
        """获取当前会话状态的只读副本。

        返回的是一个副本 (Copy)，修改它不会影响引擎内部状态。
        """
        return replace(self._state)

    def add_listener(self, callback: StatusCallback) -> None:
        """注册状态变更监听器。"""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: StatusCallback) -> None:
        """移除状态变更监听器。"""
        if callback in self._listeners:
            self._listeners.remove(callback)

    async def connect(self) -> None:
        """建立连接并加载协议策略。

        Raises:
            StateError: 已连接。
            ConnectionFailure: 连接或协议选择字节发送失败。
        """
        if self._state.connected:
            raise StateError("引擎已连接，不能重复连接")

        self._update_status(CoreStatus.CONNECTING, "正在连接...")
        try:
            await self.connection.connect()
        except SidError as e:
            self._state.last_error = str(e)
            self._update_status(CoreStatus.ERROR, f"连接失败: {e}")
            raise

        self._state.connected = True
        self._state.handshake = HandshakeState.CONNECTED
        self._load_strategy()

    def _load_strategy(self) -> None:
        """实例化协议策略。本机 IP 未配置时使用连接的本地地址。"""
        config = self.config
        if config.local_ip_bytes == _UNSPECIFIED_IP:
            config = replace(config, local_ip_bytes=self.connection.local_ip_bytes)

        self.protocol = SidProtocol(
            config,
            self._state,
            self.connection,
            self.revision_checker,
            self.key_decoder,
            self.message_observer,
        )

    async def login(self) -> bool:
        """执行认证握手。未连接时会先自动连接。

        外部调用必须使用 await core.login()。

        Returns:
            bool: 握手完成返回 True。

        Raises:
            AuthError: 认证被拒绝 (业务层面的失败)。
            NetworkError: 网络通信异常 (IO层面的失败)。
            ProtocolError: 协议交互异常。
            StateError: 上一次非完整登录占用了当前连接。
        """
        if self._state.is_authenticated:
            logger.warning("当前已认证，跳过登录")
            return True

        if self._state.handshake is HandshakeState.AUTH_INFO_RECEIVED:
            raise StateError("连接已用于非完整登录，请先 stop() 再重新登录")

        if not self._state.connected:
            await self.connect()
        assert self.protocol is not None

        self._update_status(CoreStatus.AUTHENTICATING, "正在认证...")
        try:
            await self.protocol.login(self.config.full_login)

        except AuthError as ae:
            self._state.last_error = str(ae)
            self._update_status(CoreStatus.OFFLINE, f"认证被拒绝: {ae}")
            await self._disconnect()
            raise

        except SidError as e:
            # 记录状态后向上冒泡，由上层决定是否重新连接
            self._state.last_error = str(e)
            self._update_status(CoreStatus.ERROR, f"认证异常: {e}")
            await self._disconnect()
            raise

        if self._state.is_authenticated:
            self._update_status(CoreStatus.AUTHENTICATED, "认证成功")
        else:
            self._update_status(CoreStatus.AUTHENTICATING, "已获取服务器认证参数")
        return True

    async def stop(self) -> None:
        """停止引擎并关闭连接。"""
        await self._disconnect()
        self._state.handshake = HandshakeState.DISCONNECTED
        self._state.reset_session()
        self._update_status(CoreStatus.OFFLINE, "已停止")

    async def _disconnect(self) -> None:
        await self.connection.close()
        self._state.connected = False
        self.protocol = None

    def _update_status(self, status: CoreStatus, msg: str) -> None:
        """更新内部状态并异步触发所有回调。"""
        self._state.status = status
        logger.info(f"[{status.name}] {msg}")

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for callback in self._listeners:
            try:
                if inspect.iscoroutinefunction(callback):
                    if loop is None:
                        # 没有运行中的 loop，协程无法被调度
                        logger.debug(f"事件循环未运行，跳过异步回调: {callback!r}")
                        continue
                    task = loop.create_task(callback(status, msg))  # type: ignore
                    self._listener_tasks.add(task)
                    task.add_done_callback(self._on_listener_done)
                elif loop is None:
                    callback(status, msg)
                else:
                    loop.call_soon(callback, status, msg)
            except Exception as e:
                logger.error(f"回调执行异常: {e}")

    def _on_listener_done(self, task: "asyncio.Task[Any]") -> None:
        self._listener_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"异步回调执行异常: {exc}")
