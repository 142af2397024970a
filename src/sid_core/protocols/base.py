"""
SID 协议基类 (Base Protocol)

定义所有认证协议策略必须实现的抽象接口。
"""

import abc
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import SidConfig
    from ..state import SidState
    from .sid.frame import ByteStream


class BaseProtocol(abc.ABC):
    """协议策略抽象基类。

    具体的协议配置 (如 Broken SHA-1 登录) 都必须继承此类，
    并实现异步的认证流程。
    """

    def __init__(
        self,
        config: "SidConfig",
        state: "SidState",
        stream: "ByteStream",
    ) -> None:
        """初始化协议基类。

        Args:
            config: 全局配置对象。
            state: 共享状态对象。
            stream: 已连接的字节流 (由调用方持有，策略不负责打开或关闭)。
        """
        self.config = config
        self.state = state
        self.stream = stream
        self.logger = logging.getLogger(self.__class__.__name__)

    @abc.abstractmethod
    async def login(self, full_login: bool = True) -> bool:
        """[Abstract] 执行认证握手。

        Args:
            full_login: 为 False 时只执行到服务器认证参数 (AUTH_INFO) 为止。

        Returns:
            bool: 握手按预期完成返回 True。

        Raises:
            AuthError: 认证被拒绝（版本/CD-Key 校验失败、密码错误等）。
            NetworkError: 网络通信异常。
            ProtocolError: 协议交互异常。
        """
        raise NotImplementedError
