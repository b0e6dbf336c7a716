"""設定管理モジュール - config.ymlの読み込みとバリデーション."""

import ipaddress
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from . import constants
from .logger import LogLevel


class Config(BaseModel):
    """キャッシュDNSフォワーダー設定.

    未指定の項目はconstants.pyの値（環境変数DNSIMPLE_*で上書き可能）を使用する。
    """

    # 上位DNS
    upstream_dns: str = Field(
        default_factory=lambda: constants.DEFAULT_UPSTREAM_DNS, description="上位DNSサーバーIP"
    )
    upstream_port: int = Field(
        default_factory=lambda: constants.DEFAULT_UPSTREAM_PORT,
        ge=1,
        le=65535,
        description="上位DNSポート",
    )
    upstream_timeout: float = Field(
        default_factory=lambda: constants.DEFAULT_UPSTREAM_TIMEOUT,
        gt=0,
        description="上位DNS応答待ちタイムアウト（秒）",
    )

    # リスニング
    bind_address: str = Field(
        default_factory=lambda: constants.DEFAULT_BIND_ADDRESS, description="バインドアドレス"
    )
    port: int = Field(
        default_factory=lambda: constants.DEFAULT_DNS_PORT,
        ge=0,
        le=65535,
        description="DNSリスニングポート（0はテスト用の自動割り当て）",
    )

    # キャッシュファイル
    a_cache_path: str = Field(
        default_factory=lambda: constants.A_CACHE_PATH, description="Aレコードキャッシュファイル"
    )
    ns_cache_path: str = Field(
        default_factory=lambda: constants.NS_CACHE_PATH, description="NSレコードキャッシュファイル"
    )

    log_level: str = Field(default_factory=lambda: constants.LOG_LEVEL, description="ログレベル")

    @field_validator("upstream_dns", "bind_address")
    @classmethod
    def validate_ip_address(cls, v: str) -> str:
        """IPアドレスのバリデーション."""
        try:
            ipaddress.ip_address(v)
        except ValueError as e:
            raise ValueError(f"Invalid IP address: {v}") from e
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """ログレベルのバリデーション（大文字に正規化）."""
        level = v.upper()
        if level not in LogLevel.__members__:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """YAMLファイルから設定を読み込む."""
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)

        if data is None:
            data = {}

        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """設定をYAMLファイルに書き込む."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, allow_unicode=True)


def load_config(config_path: Path | None = None) -> Config:
    """設定ファイルを読み込む.

    Args:
        config_path: 設定ファイルパス（未指定時は環境変数またはデフォルトパス）

    Returns:
        Config: 読み込んだ設定
    """
    if config_path is None:
        config_path = Path(constants.get_config_path())

    if not config_path.exists():
        # デフォルト設定で初期化
        return Config()

    return Config.from_yaml(config_path)
