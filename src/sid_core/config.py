"""
SID 核心库 - 配置模块

负责配置的加载、解析与强类型转换。
支持从 TOML 文件、环境变量 (可选 .env 文件) 或字典中加载配置。
"""

import logging
import os
import socket
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

from .exceptions import ConfigError
from .protocols.sid.constants import PlatformId, ProductId
from .protocols.sid.records import FileTriple

logger = logging.getLogger(__name__)

ENV_PREFIX = "SID_"


@dataclass(frozen=True)
class SidConfig:
    """SidCore 的强类型配置对象。

    所有字段均为只读 (frozen=True)，确保配置在运行时不可变。

    Attributes:
        account_name: 账号名。
        password: 账号密码 (明文，仅以 tokenized hash 形式上线)。
        server_address: 认证服务器地址。
        server_port: 认证服务器端口 (通常为 6112)。
        product: 产品标识。
        platform: 平台标识。
        version: 客户端版本字节。
        local_ip_bytes: 上报的本机 IP (4 bytes)。全 0 表示使用连接的本地地址。
        cd_keys: 按发送顺序排列的 CD-Key。
        cd_key_owner: CD-Key 持有人名称。
        file_triple: 版本校验使用的 (主程序, 库 1, 库 2)。
        product_language: 产品语言 (4 字符，如 enUS)。
        timezone_bias: 时区偏移 (分钟)。
        locale_id: 区域 ID。
        language_id: 语言 ID。
        country_abbreviation: 国家缩写。
        country: 国家名称。
        connect_timeout: TCP 连接超时 (秒)。
        read_timeout: 单次读取超时 (秒)。
        full_login: 是否执行完整登录 (否则在 AUTH_INFO 后停止)。
    """

    # --- 1. 身份与连接 ---
    account_name: str
    password: str
    server_address: str
    server_port: int

    # --- 2. 产品信息 ---
    product: ProductId
    platform: PlatformId
    version: int
    local_ip_bytes: bytes

    # --- 3. CD-Key 与版本校验 ---
    cd_keys: tuple[str, ...]
    cd_key_owner: str
    file_triple: FileTriple

    # --- 4. 地区信息 ---
    product_language: str
    timezone_bias: int
    locale_id: int
    language_id: int
    country_abbreviation: str
    country: str

    # --- 5. 运行参数 ---
    connect_timeout: float
    read_timeout: float
    full_login: bool

    def __repr__(self) -> str:
        """
        覆盖默认的 repr，隐藏密码与 CD-Key，防止日志泄露敏感信息。
        """
        return (
            f"<{self.__class__.__name__} "
            f"server={self.server_address}:{self.server_port}, "
            f"account='{self.account_name}', "
            f"password='******', "
            f"cd_keys=<{len(self.cd_keys)} hidden>, "
            f"product={self.product.name}>"
        )


def create_config_from_dict(raw_data: dict[str, Any]) -> SidConfig:
    """通用工厂：将字典转换为强类型配置对象。

    负责字段的清洗、默认值注入和类型转换。

    Args:
        raw_data: 原始配置字典 (来自 TOML 或 Env)。

    Returns:
        SidConfig: 验证并转换后的配置对象。

    Raises:
        ConfigError: 当必要字段缺失或格式错误时抛出。
    """
    try:
        # --- 内部辅助函数 ---
        def _req(key: str) -> Any:
            """获取必要字段，缺失则报错"""
            if key not in raw_data:
                raise ConfigError(f"配置缺失: 缺少必要字段 '{key}'")
            return raw_data[key]

        def _get(key: str, default: Any) -> Any:
            """获取可选字段，缺失则使用默认值"""
            return raw_data.get(key, default)

        def _to_int(key: str, default: int) -> int:
            """支持 0x 前缀的整数"""
            val = raw_data.get(key, default)
            if isinstance(val, int):
                return val
            try:
                return int(str(val).strip(), 0)
            except ValueError:
                raise ConfigError(f"整数格式无效 '{key}': {val}")

        def _to_bool(key: str, default: bool) -> bool:
            val = raw_data.get(key, default)
            if isinstance(val, bool):
                return val
            return str(val).strip().lower() in ("1", "true", "yes", "on")

        def _to_bytes_ip(key: str, default: str = "0.0.0.0") -> bytes:
            """将 IP 字符串转换网络字节序 (4 bytes)"""
            val = str(raw_data.get(key, default))
            try:
                return socket.inet_aton(val)
            except OSError:
                raise ConfigError(f"IP 格式无效 '{key}': {val}")

        def _to_enum(key: str, enum_cls: Any, default: Any) -> Any:
            val = str(raw_data.get(key, default.name)).upper()
            if val not in enum_cls.__members__:
                raise ConfigError(f"'{key}' 的取值无效: {val}")
            return enum_cls[val]

        def _to_list(key: str) -> list[str]:
            """列表或逗号分隔的字符串"""
            val = raw_data.get(key, [])
            if isinstance(val, str):
                return [item.strip() for item in val.split(",") if item.strip()]
            return [str(item) for item in val]

        product_language = str(_get("product_language", "enUS"))
        if len(product_language) != 4:
            raise ConfigError(f"product_language 必须为 4 个字符: {product_language}")

        # --- 构建对象 ---
        return SidConfig(
            # 身份与连接
            account_name=str(_req("account_name")),
            password=str(_req("password")),
            server_address=str(_req("server_address")),
            server_port=_to_int("server_port", 6112),
            # 产品
            product=_to_enum("product", ProductId, ProductId.D2XP),
            platform=_to_enum("platform", PlatformId, PlatformId.IX86),
            version=_to_int("version", 0x0D),
            local_ip_bytes=_to_bytes_ip("local_ip"),
            # CD-Key 与版本校验
            cd_keys=tuple(_to_list("cd_keys")),
            cd_key_owner=str(_get("cd_key_owner", _req("account_name"))),
            file_triple=FileTriple.from_paths(_to_list("file_triple")),
            # 地区
            product_language=product_language,
            timezone_bias=_to_int("timezone_bias", 0),
            locale_id=_to_int("locale_id", 0x0409),
            language_id=_to_int("language_id", 0x0409),
            country_abbreviation=str(_get("country_abbreviation", "USA")),
            country=str(_get("country", "United States")),
            # 运行参数
            connect_timeout=float(_get("connect_timeout", 5.0)),
            read_timeout=float(_get("read_timeout", 10.0)),
            full_login=_to_bool("full_login", True),
        )

    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(f"配置生成失败: {e}") from e


def load_config_from_toml(file_path: Path, profile: str = "default") -> SidConfig:
    """从 TOML 文件加载配置。

    支持多层级查找策略:
    1. [profile.xxx]: 优先查找指定的 profile 块。
    2. [sid]: 单一配置块。
    3. Root: 兼容根目录直接配置。

    Args:
        file_path: TOML 文件路径。
        profile: 配置预设名。默认为 "default"。

    Returns:
        SidConfig: 配置对象。

    Raises:
        ConfigError: 文件读取失败或 Profile 不存在。
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise ConfigError(f"配置文件未找到: {file_path}")

    try:
        with open(file_path, "rb") as f:
            data = tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"读取 TOML 失败: {e}") from e

    raw_config = {}

    if "profile" in data:
        if profile not in data["profile"]:
            raise ConfigError(f"未找到预设: [profile.{profile}]")
        raw_config = data["profile"][profile]
    elif "sid" in data:
        if profile != "default":
            logger.warning(f"配置仅包含 [sid] 节，忽略 profile='{profile}'。")
        raw_config = data["sid"]
    else:
        raw_config = data

    return create_config_from_dict(raw_config)


# 字段映射表 (Config Field -> Env Suffix)
_ENV_MAP = {
    "account_name": "ACCOUNT",
    "password": "PASSWORD",
    "server_address": "SERVER",
    "server_port": "PORT",
    "product": "PRODUCT",
    "platform": "PLATFORM",
    "version": "VERSION",
    "local_ip": "LOCAL_IP",
    "cd_keys": "CD_KEYS",
    "cd_key_owner": "CD_KEY_OWNER",
    "product_language": "PRODUCT_LANGUAGE",
    "timezone_bias": "TIMEZONE_BIAS",
    "locale_id": "LOCALE_ID",
    "language_id": "LANGUAGE_ID",
    "country_abbreviation": "COUNTRY_ABBREVIATION",
    "country": "COUNTRY",
    "connect_timeout": "CONNECT_TIMEOUT",
    "read_timeout": "READ_TIMEOUT",
    "full_login": "FULL_LOGIN",
}

_ENV_FILE_TRIPLE = ("GAME_EXE", "BNCLIENT_DLL", "D2CLIENT_DLL")


def load_config_from_env(env_file: Path | None = None) -> SidConfig:
    """从环境变量加载配置 (Docker/Cloud Friendly)。

    读取所有以 `SID_` 开头的环境变量，例如 `SID_ACCOUNT` -> `account_name`。
    CD-Key 以逗号分隔 (`SID_CD_KEYS`)，文件三元组来自
    `SID_GAME_EXE` / `SID_BNCLIENT_DLL` / `SID_D2CLIENT_DLL`。

    Args:
        env_file: 可选的 .env 文件。其中的值优先于进程环境变量。

    Returns:
        SidConfig: 配置对象。

    Raises:
        ConfigError: 未检测到任何相关环境变量，或 .env 文件不存在。
    """
    env: dict[str, str | None] = dict(os.environ)
    if env_file is not None:
        env_file = Path(env_file)
        if not env_file.exists():
            raise ConfigError(f".env 文件未找到: {env_file}")
        env.update(dotenv_values(env_file))
        logger.debug(f"已加载 .env 文件: {env_file}")

    raw_data: dict[str, Any] = {}

    for cfg_key, env_suffix in _ENV_MAP.items():
        val = env.get(f"{ENV_PREFIX}{env_suffix}")
        if val is not None:
            raw_data[cfg_key] = val

    triple = [env.get(f"{ENV_PREFIX}{suffix}") for suffix in _ENV_FILE_TRIPLE]
    if any(path is not None for path in triple):
        raw_data["file_triple"] = [path for path in triple if path is not None]

    if not raw_data:
        raise ConfigError("未检测到 SID_ 前缀的环境变量")

    return create_config_from_dict(raw_data)
