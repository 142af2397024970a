# src/sid_core/network.py
"""
SID 核心库 - 网络模块 (Network) [Asyncio Edition]

封装 TCP 连接的建立、协议选择字节的发送以及定长读写。
该模块屏蔽了 asyncio Stream 的细节，向策略层提供纯粹的 write / read_exact 接口。
"""

import asyncio
import logging
import socket

from .config import SidConfig
from .exceptions import ConnectionFailure, ShortRead, StateError, TransportFailure
from .protocols.sid.constants import PROTOCOL_SELECTOR

logger = logging.getLogger(__name__)


class SidConnection:
    """
    封装 asyncio TCP 操作的客户端。
    """

    def __init__(self, config: SidConfig):
        self.config = config
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None

    @property
    def is_connected(self) -> bool:
        return self.writer is not None and not self.writer.is_closing()

    async def connect(self) -> None:
        """
        建立 TCP 连接并立即发送协议选择字节 (0x01)。
        """
        if self.is_connected:
            raise StateError("连接已建立，不能重复连接")

        target = (self.config.server_address, self.config.server_port)
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(*target),
                timeout=self.config.connect_timeout,
            )
            logger.debug(f"TCP 连接已建立: {target[0]}:{target[1]}")
        except (OSError, asyncio.TimeoutError) as e:
            await self.close()
            raise ConnectionFailure(f"无法连接 {target[0]}:{target[1]}: {e}") from e

        try:
            self.writer.write(PROTOCOL_SELECTOR)
            await self.writer.drain()
        except OSError as e:
            await self.close()
            raise ConnectionFailure(f"协议选择字节发送失败: {e}") from e

    async def write(self, data: bytes) -> None:
        """发送完整字节串。"""
        if not self.is_connected:
            raise TransportFailure("连接未建立或已关闭")
        assert self.writer is not None

        try:
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=self.config.read_timeout)
        except asyncio.TimeoutError:
            raise TransportFailure(f"发送超时 ({self.config.read_timeout}s)") from None
        except OSError as e:
            raise TransportFailure(f"发送失败: {e}") from e

    async def read_exact(self, count: int) -> bytes:
        """
        读取恰好 count 个字节 (Async)。

        使用 asyncio.wait_for 实现超时控制。
        """
        if self.reader is None:
            raise TransportFailure("连接未建立")

        try:
            return await asyncio.wait_for(
                self.reader.readexactly(count), timeout=self.config.read_timeout
            )
        except asyncio.IncompleteReadError as e:
            raise ShortRead(count, len(e.partial)) from e
        except asyncio.TimeoutError:
            raise TransportFailure(f"接收超时 ({self.config.read_timeout}s)") from None
        except OSError as e:
            raise TransportFailure(f"接收错误: {e}") from e

    @property
    def local_ip_bytes(self) -> bytes:
        """连接的本地 IPv4 地址 (4 bytes)。未连接时返回全 0。"""
        if self.writer is None:
            return b"\x00" * 4
        sockname = self.writer.get_extra_info("sockname")
        if not sockname:
            return b"\x00" * 4
        try:
            return socket.inet_aton(sockname[0])
        except OSError:
            # IPv6 等无法用 4 字节表示的地址
            return b"\x00" * 4

    async def close(self) -> None:
        """关闭连接"""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except OSError as e:
                logger.debug(f"关闭连接时出现异常: {e}")
            self.writer = None
            self.reader = None
            logger.debug("TCP 连接已关闭")

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
