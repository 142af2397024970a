"""
SID 协议实现

本包负责 SID 消息的纯粹构建 (Build) 与解析 (Parse)，以及基于这些消息的认证策略。
编解码部分不包含任何 socket 操作或状态管理。
"""

from . import constants
from .dispatch import decode, decode_client_message, decode_server_message
from .frame import SidHeader, assemble, parse_header, read_full_message
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
from .records import CdKeyRecord, CdKeyValues, FileTriple, Realm
from .revision import RevisionCheckResult, extract_mpq_number
from .strategy import SidProtocol

# 公共 API
__all__ = [
    "constants",
    "decode",
    "decode_client_message",
    "decode_server_message",
    "SidHeader",
    "assemble",
    "parse_header",
    "read_full_message",
    "SidMessage",
    "AuthInfoClientToServer",
    "AuthInfoServerToClient",
    "PingClientToServer",
    "PingServerToClient",
    "AuthCheckClientToServer",
    "AuthCheckServerToClient",
    "LogonResponse2ClientToServer",
    "LogonResponse2ServerToClient",
    "QueryRealms2ClientToServer",
    "QueryRealms2ServerToClient",
    "LogonRealmExClientToServer",
    "LogonRealmExServerToClient",
    "CdKeyRecord",
    "CdKeyValues",
    "FileTriple",
    "Realm",
    "RevisionCheckResult",
    "extract_mpq_number",
    "SidProtocol",
]
