# tests/conftest.py
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# 确保 src 目录在 sys.path 中
src_path = Path(__file__).resolve().parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from sid_core.config import SidConfig
from sid_core.protocols.sid.constants import PlatformId, ProductId
from sid_core.protocols.sid.records import CdKeyValues, FileTriple
from sid_core.protocols.sid.revision import RevisionCheckResult


class ScriptedStream:
    """预先装入服务器响应的内存字节流，记录所有写出的数据。"""

    def __init__(self, incoming: bytes = b"") -> None:
        self._incoming = bytearray(incoming)
        self.written: list[bytes] = []

    def feed(self, data: bytes) -> None:
        self._incoming.extend(data)

    async def write(self, data: bytes) -> None:
        self.written.append(bytes(data))

    async def read_exact(self, count: int) -> bytes:
        chunk = bytes(self._incoming[:count])
        del self._incoming[:count]
        return chunk


@pytest.fixture
def valid_config():
    """
    [Fixture] 返回一个完整的 SidConfig 对象。
    """
    return SidConfig(
        account_name="SamaxAcc",
        password="SamaxPass",
        server_address="127.0.0.1",
        server_port=6112,
        # --- 产品 ---
        product=ProductId.D2XP,
        platform=PlatformId.IX86,
        version=0x0D,
        local_ip_bytes=b"\xc0\xa8\x01\x02",  # 192.168.1.2
        # --- CD-Key 与版本校验 ---
        cd_keys=("AAAABBBBCCCCDDDD", "EEEEFFFFGGGGHHHH"),
        cd_key_owner="Samax",
        file_triple=FileTriple.from_paths(["Game.exe", "Bnclient.dll", "D2Client.dll"]),
        # --- 地区 ---
        product_language="enUS",
        timezone_bias=-120,
        locale_id=0x041D,
        language_id=0x041D,
        country_abbreviation="SWE",
        country="Sweden",
        # --- 运行参数 ---
        connect_timeout=1.0,
        read_timeout=1.0,
        full_login=True,
    )


@pytest.fixture
def revision_result():
    return RevisionCheckResult(
        exe_version=0x01000D01,
        exe_hash=0x1A2B3C4D,
        exe_info="Game.exe 03/05/07 21:48:30 61440",
    )


@pytest.fixture
def revision_checker(revision_result):
    return MagicMock(return_value=revision_result)


@pytest.fixture
def key_decoder():
    return MagicMock(
        side_effect=lambda key: CdKeyValues(
            key_length=len(key),
            product_value=0x0A,
            public_value=0x01020304,
            private_value=0x0B0C0D0E,
        )
    )


@pytest.fixture
def scripted_stream():
    """返回 ScriptedStream 类本身，测试按需实例化。"""
    return ScriptedStream
