# tests/test_exceptions.py
"""
测试认证结果码的中文映射与异常层级。
确保每个 AuthCheckResult 都能向用户展示正确的中文提示。
"""

import pytest

from sid_core.exceptions import (
    AuthCheckResult,
    AuthenticationRejected,
    AuthError,
    DecodeError,
    LogonRejected,
    NetworkError,
    ProtocolError,
    RealmLogonFailed,
    ShortRead,
    SidError,
    TruncatedData,
    UnexpectedRealmCount,
)
from sid_core.protocols.sid.constants import LogonStatus

# 构造测试数据集: (枚举成员, 期望包含的中文片段)
TEST_CASES = [
    (AuthCheckResult.OLD_GAME_VERSION, "版本过旧"),
    (AuthCheckResult.INVALID_CD_KEY, "CD-Key"),
    (AuthCheckResult.CD_KEY_IN_USE, "正在被使用"),
    (AuthCheckResult.CD_KEY_BANNED, "封禁"),
    (AuthCheckResult.EXP_CD_KEY_IN_USE, "资料片"),
]


@pytest.mark.parametrize("result, expected_msg", TEST_CASES)
def test_auth_check_result_mapping(result, expected_msg):
    error = AuthenticationRejected(result.value)
    assert error.result_enum is result
    assert expected_msg in str(error), f"结果码 {result!r} 的中文映射不正确"


def test_unknown_auth_check_result():
    error = AuthenticationRejected(0x999, "extra")
    assert error.result_enum is None
    assert "0x999" in str(error)
    assert str(error).endswith(": extra")


def test_logon_rejected_message():
    error = LogonRejected(LogonStatus.ACCOUNT_CLOSED, "Banned")
    assert "ACCOUNT_CLOSED" in str(error)
    assert "(Banned)" in str(error)


def test_realm_logon_failed_status_is_unsigned_hex():
    assert "0x80000002" in str(RealmLogonFailed(-2147483646))


@pytest.mark.parametrize(
    "error, family",
    [
        (ShortRead(4, 0), NetworkError),
        (TruncatedData(4, 3), DecodeError),
        (UnexpectedRealmCount(2), ProtocolError),
        (RealmLogonFailed(1), AuthError),
    ],
)
def test_hierarchy(error, family):
    assert isinstance(error, family)
    assert isinstance(error, SidError)
