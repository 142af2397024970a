# File: src/sid_core/utils.py
"""
SID 核心库 - 通用算法工具箱

本模块实现 SID 协议使用的 Broken SHA-1 及基于它的 "tokenized hash"。

Broken SHA-1 与标准 SHA-1 的差异 (必须逐位复现):
1. 填充只追加 0x00，不追加 0x80 标记和 8 字节的比特长度尾部。
   至少追加 1 个字节，因此长度恰为 64 倍数的输入会多出一整块 0。
2. 消息扩展中的循环左移参数被交换: 被移位的值取作移位次数 (mod 32)，
   而原本的移位次数 (恒为 1) 被当作被移位的值。
3. 消息字与输出摘要均按小端序解释/输出。
"""

import struct
from dataclasses import dataclass

from .exceptions import InvalidField

HASH_LENGTH = 20
BLOCK_SIZE = 64
MASK32 = 0xFFFFFFFF

_INITIAL_STATE = (0x67452301, 0xEFCDAB89, 0x98BADCFE, 0x10325476, 0xC3D2E1F0)


@dataclass(frozen=True)
class BrokenSha1Hash:
    """20 字节的 Broken SHA-1 摘要 (值类型，按内容比较)。"""

    digest: bytes

    def __post_init__(self) -> None:
        if len(self.digest) != HASH_LENGTH:
            raise InvalidField(
                f"哈希长度 ({len(self.digest)}) 不是 {HASH_LENGTH} 字节"
            )
        object.__setattr__(self, "digest", bytes(self.digest))

    def __bytes__(self) -> bytes:
        return self.digest

    def hex(self) -> str:
        return self.digest.hex()


def _rotate_left(value: int, count: int) -> int:
    return ((value << count) | (value >> (32 - count))) & MASK32


def _broken_rotate_left(value: int, count: int) -> int:
    # 参数互换: value 决定移位次数，count 才是被移位的数据
    return _rotate_left(count & MASK32, value % 32)


def _pad(data: bytes) -> bytes:
    return data + b"\x00" * ((-(len(data) + 1)) % BLOCK_SIZE + 1)


def broken_sha1(data: bytes) -> bytes:
    """计算 Broken SHA-1 摘要。

    Args:
        data: 任意长度的输入字节流。

    Returns:
        bytes: 20 字节摘要 (5 个小端序 32 位字依次拼接)。
    """
    padded = _pad(bytes(data))
    h0, h1, h2, h3, h4 = _INITIAL_STATE

    for offset in range(0, len(padded), BLOCK_SIZE):
        w = list(struct.unpack("<16I", padded[offset : offset + BLOCK_SIZE]))
        for i in range(16, 80):
            w.append(_broken_rotate_left(w[i - 3] ^ w[i - 8] ^ w[i - 14] ^ w[i - 16], 1))

        a, b, c, d, e = h0, h1, h2, h3, h4
        for i in range(80):
            if i < 20:
                f = (b & c) | (~b & d)
                k = 0x5A827999
            elif i < 40:
                f = b ^ c ^ d
                k = 0x6ED9EBA1
            elif i < 60:
                f = (b & c) | (b & d) | (c & d)
                k = 0x8F1BBCDC
            else:
                f = b ^ c ^ d
                k = 0xCA62C1D6

            temp = (_rotate_left(a, 5) + f + e + k + w[i]) & MASK32
            e = d
            d = c
            c = _rotate_left(b, 30)
            b = a
            a = temp

        h0 = (h0 + a) & MASK32
        h1 = (h1 + b) & MASK32
        h2 = (h2 + c) & MASK32
        h3 = (h3 + d) & MASK32
        h4 = (h4 + e) & MASK32

    return struct.pack("<5I", h0, h1, h2, h3, h4)


def broken_sha1_of_ascii(text: str) -> bytes:
    """计算 ASCII 字符串的 Broken SHA-1 (大小写不敏感，先转小写)。

    Raises:
        InvalidField: 字符串包含非 ASCII 字符。
    """
    try:
        raw = text.lower().encode("ascii")
    except UnicodeEncodeError as e:
        raise InvalidField(
            f"凭据包含非 ASCII 字符: {e.object[e.start : e.end]!r}"
        ) from e
    return broken_sha1(raw)


def compute_tokenized_hash(
    client_token: int, server_token: int, password: str
) -> BrokenSha1Hash:
    """计算 "tokenized" 密码哈希。

    hash = BrokenSha1(client_token ++ server_token ++ BrokenSha1(lower(password)))

    账号密码 (LOGONRESPONSE2) 与 Realm 密码 (LOGONREALMEX) 均使用此组合。

    Args:
        client_token: 客户端令牌 (有符号 32 位)。
        server_token: 服务器令牌 (有符号 32 位)。
        password: 明文密码。

    Returns:
        BrokenSha1Hash: 二次哈希结果。
    """
    try:
        prefix = struct.pack("<ii", client_token, server_token)
    except struct.error as e:
        raise InvalidField(f"令牌超出 32 位有符号整数范围: {e}") from e
    return BrokenSha1Hash(broken_sha1(prefix + broken_sha1_of_ascii(password)))
