# src/sid_core/__init__.py
"""
SID-Core v0.1.0
基于 asyncio 的 SID 旧版二进制认证协议客户端核心库。
"""

# 暴露核心配置
from .config import (
    SidConfig,
    create_config_from_dict,
    load_config_from_env,
    load_config_from_toml,
)

# 暴露引擎与状态
from .core import SidCore

# 暴露异常体系 (方便上层 try-except)
from .exceptions import (
    AuthCheckResult,
    AuthError,
    ConfigError,
    DecodeError,
    EncodeError,
    NetworkError,
    ProtocolError,
    SidError,
    StateError,
)
from .network import SidConnection
from .state import CoreStatus, HandshakeState, SidState
from .utils import BrokenSha1Hash, broken_sha1, compute_tokenized_hash

__version__ = "0.1.0"

__all__ = [
    "SidCore",
    "SidConfig",
    "SidConnection",
    "SidState",
    "CoreStatus",
    "HandshakeState",
    "create_config_from_dict",
    "load_config_from_env",
    "load_config_from_toml",
    "BrokenSha1Hash",
    "broken_sha1",
    "compute_tokenized_hash",
    "SidError",
    "ConfigError",
    "StateError",
    "NetworkError",
    "ProtocolError",
    "DecodeError",
    "EncodeError",
    "AuthError",
    "AuthCheckResult",
]
