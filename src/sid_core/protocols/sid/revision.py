# src/sid_core/protocols/sid/revision.py
"""
外部协作方接口 (Collaborators)

版本校验 (exe revision check) 与 CD-Key 解码的具体算法不属于本库，
调用方需注入满足以下接口的实现:

- RevisionChecker: (value_string, file_triple, mpq_number) -> RevisionCheckResult
- CdKeyDecoder: (key) -> CdKeyValues
"""

import re
from dataclasses import dataclass
from typing import Protocol

from ...exceptions import ProtocolError
from .records import CdKeyValues, FileTriple

# ver-IX86-<n>.mpq (新格式) 与 IX86ver<n>.mpq (旧格式)
_MPQ_NAME_PATTERNS = (
    re.compile(r"^ver-IX86-(\d+)\.mpq$", re.IGNORECASE),
    re.compile(r"^IX86ver(\d+)\.mpq$", re.IGNORECASE),
)


@dataclass(frozen=True)
class RevisionCheckResult:
    """版本校验结果，直接写入 AUTH_CHECK (C→S)。"""

    exe_version: int
    exe_hash: int
    exe_info: str


class RevisionChecker(Protocol):
    def __call__(
        self, value_string: str, file_triple: FileTriple, mpq_number: int
    ) -> RevisionCheckResult: ...


class CdKeyDecoder(Protocol):
    def __call__(self, key: str) -> CdKeyValues: ...


def extract_mpq_number(mpq_file_name: str) -> int:
    """从服务器下发的 MPQ 文件名中提取版本校验公式编号。

    Args:
        mpq_file_name: 如 "ver-IX86-6.mpq" 或 "IX86ver1.mpq"。

    Returns:
        int: 公式编号。

    Raises:
        ProtocolError: 文件名不符合任何已知格式。
    """
    for pattern in _MPQ_NAME_PATTERNS:
        match = pattern.match(mpq_file_name)
        if match:
            return int(match.group(1))
    raise ProtocolError(f"无法识别的 MPQ 文件名: '{mpq_file_name}'")
