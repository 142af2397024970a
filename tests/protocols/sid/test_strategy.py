# tests/protocols/sid/test_strategy.py
"""
测试 SidProtocol 的握手流程编排。

服务器响应预先写入 ScriptedStream，按一问一答的顺序被读取。
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sid_core.exceptions import (
    AuthCheckResult,
    AuthenticationRejected,
    LogonRejected,
    ProtocolError,
    RealmLogonFailed,
    ShortRead,
    StateError,
    UnexpectedMessageType,
    UnexpectedRealmCount,
    UnsupportedLogonType,
)
from sid_core.protocols.sid import dispatch
from sid_core.protocols.sid.constants import LogonStatus, MessageDirection, MessageType
from sid_core.protocols.sid.messages import (
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
)
from sid_core.protocols.sid.records import Realm
from sid_core.protocols.sid.strategy import SidProtocol
from sid_core.state import HandshakeState, SidState

SERVER_TOKEN = 0x5D634A3E
AUTHCHECK_TOKEN = 0x00224A97
REALM_TOKEN = 0x0F8B4B4C
VALUE_STRING = "A=1 B=2 C=3 4 A=A^S B=B-C C=C+A A=A-B"

PING = PingServerToClient.build(ping_value=-1263693771).raw
AUTH_INFO = AuthInfoServerToClient.build(
    logon_type=0,
    server_token=SERVER_TOKEN,
    udp_value=0x50818,
    mpq_file_time_ticks=128176049100000000,
    mpq_file_name="ver-IX86-6.mpq",
    value_string=VALUE_STRING,
).raw
AUTH_CHECK_OK = AuthCheckServerToClient.build(result=0, info="").raw
LOGON_OK = LogonResponse2ServerToClient.build(status=LogonStatus.SUCCESS).raw
REALMS = QueryRealms2ServerToClient.build(
    unknown=0, realms=[Realm(1, "USEast", "U.S. East")]
).raw
REALM_LOGON_OK = LogonRealmExServerToClient.build(
    mcp_cookie=REALM_TOKEN,
    mcp_status=0,
    mcp_chunk1=(0x11, 0x22),
    ip_address=b"\x0a\x00\x00\x01",
    port=6113,
    mcp_chunk2=tuple(range(12)),
    unique_name="SamaxAcc",
).raw

FULL_SCRIPT = PING + AUTH_INFO + AUTH_CHECK_OK + LOGON_OK + REALMS + REALM_LOGON_OK


@pytest.fixture
def tokens(mocker):
    return mocker.patch(
        "sid_core.protocols.sid.strategy.generate_client_token",
        side_effect=[AUTHCHECK_TOKEN, REALM_TOKEN],
    )


@pytest.fixture
def make_protocol(valid_config, revision_checker, key_decoder, scripted_stream, tokens):
    def _make(incoming: bytes, observer=None):
        state = SidState(connected=True)
        stream = scripted_stream(incoming)
        protocol = SidProtocol(
            valid_config, state, stream, revision_checker, key_decoder, observer
        )
        return protocol, state, stream

    return _make


def _written(stream):
    return [dispatch.decode_client_message(raw) for raw in stream.written]


# --- 成功路径 ---


@pytest.mark.asyncio
async def test_full_login_success(make_protocol, valid_config, revision_checker):
    protocol, state, stream = make_protocol(FULL_SCRIPT)

    assert await protocol.login() is True

    sent = _written(stream)
    assert [type(m) for m in sent] == [
        AuthInfoClientToServer,
        PingClientToServer,
        AuthCheckClientToServer,
        LogonResponse2ClientToServer,
        QueryRealms2ClientToServer,
        LogonRealmExClientToServer,
    ]

    # AUTH_INFO 使用配置中的地区与本机 IP
    auth_info = sent[0]
    assert auth_info.local_ip == b"\xc0\xa8\x01\x02"
    assert auth_info.country == "Sweden"

    # PING 原样回显
    assert sent[1].ping_value == -1263693771

    # 版本校验协作方收到 value string、文件三元组与 MPQ 编号
    revision_checker.assert_called_once_with(VALUE_STRING, valid_config.file_triple, 6)
    assert sent[2].client_token == AUTHCHECK_TOKEN
    assert sent[2].key_count == 2

    # 账号登录复用 AUTH_CHECK 的客户端令牌
    assert stream.written[3] == LogonResponse2ClientToServer.create(
        client_token=AUTHCHECK_TOKEN,
        server_token=SERVER_TOKEN,
        account_name="SamaxAcc",
        password="SamaxPass",
    ).raw

    # Realm 登录使用独立的新令牌与唯一 Realm 的标题
    assert stream.written[5] == LogonRealmExClientToServer.create(
        client_token=REALM_TOKEN, server_token=SERVER_TOKEN, realm_title="USEast"
    ).raw

    assert state.handshake is HandshakeState.AUTHENTICATED
    assert state.is_authenticated
    assert state.server_token == SERVER_TOKEN
    assert state.client_token_authcheck == AUTHCHECK_TOKEN
    assert state.client_token_realm == REALM_TOKEN
    assert state.realms == (Realm(1, "USEast", "U.S. East"),)
    assert state.realm_logon.mcp_address == ("10.0.0.1", 6113)
    assert state.realm_logon.unique_name == "SamaxAcc"


@pytest.mark.asyncio
async def test_partial_login_stops_after_auth_info(make_protocol, revision_checker):
    protocol, state, stream = make_protocol(PING + AUTH_INFO)

    assert await protocol.login(full_login=False) is True

    assert len(stream.written) == 2
    assert state.handshake is HandshakeState.AUTH_INFO_RECEIVED
    assert state.server_token == SERVER_TOKEN
    assert not state.is_authenticated
    revision_checker.assert_not_called()


@pytest.mark.asyncio
async def test_observer_sees_every_message(make_protocol):
    seen = []
    protocol, _, _ = make_protocol(
        FULL_SCRIPT, observer=lambda d, m: seen.append((d, m.message_type))
    )

    await protocol.login()

    c2s = MessageDirection.CLIENT_TO_SERVER
    s2c = MessageDirection.SERVER_TO_CLIENT
    assert seen == [
        (c2s, MessageType.AUTH_INFO),
        (s2c, MessageType.PING),
        (c2s, MessageType.PING),
        (s2c, MessageType.AUTH_INFO),
        (c2s, MessageType.AUTH_CHECK),
        (s2c, MessageType.AUTH_CHECK),
        (c2s, MessageType.LOGONRESPONSE2),
        (s2c, MessageType.LOGONRESPONSE2),
        (c2s, MessageType.QUERYREALMS2),
        (s2c, MessageType.QUERYREALMS2),
        (c2s, MessageType.LOGONREALMEX),
        (s2c, MessageType.LOGONREALMEX),
    ]


@pytest.mark.asyncio
async def test_async_observer_is_awaited(make_protocol):
    observer = AsyncMock()
    protocol, _, _ = make_protocol(PING + AUTH_INFO, observer=observer)

    await protocol.login(full_login=False)

    assert observer.await_count == 4


@pytest.mark.asyncio
async def test_observer_errors_do_not_break_login(make_protocol):
    observer = MagicMock(side_effect=RuntimeError("boom"))
    protocol, state, _ = make_protocol(FULL_SCRIPT, observer=observer)

    assert await protocol.login() is True
    assert state.is_authenticated
    assert observer.call_count == 12


# --- 失败路径 ---


@pytest.mark.asyncio
async def test_login_requires_connection(make_protocol):
    protocol, state, stream = make_protocol(FULL_SCRIPT)
    state.connected = False

    with pytest.raises(StateError):
        await protocol.login()
    assert stream.written == []


@pytest.mark.asyncio
async def test_unsupported_logon_type(make_protocol):
    nls = AuthInfoServerToClient.build(
        logon_type=2,
        server_token=SERVER_TOKEN,
        udp_value=0,
        mpq_file_time_ticks=0,
        mpq_file_name="ver-IX86-6.mpq",
        value_string=VALUE_STRING,
    ).raw
    protocol, state, stream = make_protocol(PING + nls)

    with pytest.raises(UnsupportedLogonType) as exc_info:
        await protocol.login()
    assert exc_info.value.logon_type == 2
    assert len(stream.written) == 2
    assert state.handshake is HandshakeState.FAILED
    assert state.server_token is None


@pytest.mark.asyncio
async def test_auth_check_rejected(make_protocol):
    rejected = AuthCheckServerToClient.build(result=0x201, info="OtherUser").raw
    protocol, state, stream = make_protocol(PING + AUTH_INFO + rejected)

    with pytest.raises(AuthenticationRejected) as exc_info:
        await protocol.login()
    assert exc_info.value.result_enum is AuthCheckResult.CD_KEY_IN_USE
    assert exc_info.value.info == "OtherUser"
    assert len(stream.written) == 3
    assert state.handshake is HandshakeState.FAILED


@pytest.mark.asyncio
async def test_logon_rejected_stops_before_realm_query(make_protocol):
    rejected = LogonResponse2ServerToClient.build(status=LogonStatus.INVALID_PASSWORD).raw
    protocol, state, stream = make_protocol(PING + AUTH_INFO + AUTH_CHECK_OK + rejected)

    with pytest.raises(LogonRejected) as exc_info:
        await protocol.login()
    assert exc_info.value.status is LogonStatus.INVALID_PASSWORD

    sent_types = [m.message_type for m in _written(stream)]
    assert MessageType.QUERYREALMS2 not in sent_types
    assert state.handshake is HandshakeState.FAILED
    assert state.client_token_authcheck is None


@pytest.mark.asyncio
async def test_logon_rejected_closed_account_carries_info(make_protocol):
    closed = LogonResponse2ServerToClient.build(
        status=LogonStatus.ACCOUNT_CLOSED, info="Banned"
    ).raw
    protocol, _, _ = make_protocol(PING + AUTH_INFO + AUTH_CHECK_OK + closed)

    with pytest.raises(LogonRejected) as exc_info:
        await protocol.login()
    assert exc_info.value.info == "Banned"


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [0, 2])
async def test_realm_count_must_be_one(make_protocol, count):
    realms = QueryRealms2ServerToClient.build(
        unknown=0, realms=[Realm(1, f"Realm{i}", "") for i in range(count)]
    ).raw
    protocol, state, stream = make_protocol(
        PING + AUTH_INFO + AUTH_CHECK_OK + LOGON_OK + realms
    )

    with pytest.raises(UnexpectedRealmCount) as exc_info:
        await protocol.login()
    assert exc_info.value.count == count
    assert len(stream.written) == 5
    assert state.realms == ()


@pytest.mark.asyncio
async def test_realm_logon_failed(make_protocol):
    failed = LogonRealmExServerToClient.build(mcp_cookie=REALM_TOKEN, mcp_status=2).raw
    protocol, state, _ = make_protocol(
        PING + AUTH_INFO + AUTH_CHECK_OK + LOGON_OK + REALMS + failed
    )

    with pytest.raises(RealmLogonFailed) as exc_info:
        await protocol.login()
    assert exc_info.value.mcp_status == 2
    assert state.handshake is HandshakeState.FAILED
    assert state.realm_logon is None


@pytest.mark.asyncio
async def test_unexpected_message_type(make_protocol):
    protocol, state, _ = make_protocol(AUTH_CHECK_OK)

    with pytest.raises(UnexpectedMessageType) as exc_info:
        await protocol.login()
    assert exc_info.value.expected is MessageType.PING
    assert exc_info.value.actual is MessageType.AUTH_CHECK
    assert state.handshake is HandshakeState.FAILED


@pytest.mark.asyncio
async def test_connection_closed_mid_handshake(make_protocol):
    protocol, state, _ = make_protocol(PING + AUTH_INFO[:10])

    with pytest.raises(ShortRead):
        await protocol.login()
    assert state.handshake is HandshakeState.FAILED


@pytest.mark.asyncio
async def test_collaborator_failure_is_wrapped(make_protocol, revision_checker):
    revision_checker.side_effect = FileNotFoundError("Game.exe")
    protocol, _, stream = make_protocol(FULL_SCRIPT)

    with pytest.raises(ProtocolError) as exc_info:
        await protocol.login()
    assert isinstance(exc_info.value.__cause__, FileNotFoundError)
    assert len(stream.written) == 2


@pytest.mark.asyncio
async def test_unknown_mpq_file_name(make_protocol, revision_checker):
    odd = AuthInfoServerToClient.build(
        logon_type=0,
        server_token=SERVER_TOKEN,
        udp_value=0,
        mpq_file_time_ticks=0,
        mpq_file_name="lockdown-IX86-00.mpq",
        value_string=VALUE_STRING,
    ).raw
    protocol, _, _ = make_protocol(PING + odd)

    with pytest.raises(ProtocolError, match="MPQ"):
        await protocol.login()
    revision_checker.assert_not_called()
