"""共通定数定義.

環境変数からオーバーライド可能な設定値を一元管理します。
"""

import os

# 設定ファイルパス
CONFIG_PATH = os.getenv("DNSIMPLE_CONFIG_PATH", "/etc/dnsimple/config.yml")

# DNS設定
DEFAULT_DNS_PORT = int(os.getenv("DNSIMPLE_DNS_PORT", "53"))
DEFAULT_BIND_ADDRESS = os.getenv("DNSIMPLE_BIND_ADDRESS", "0.0.0.0")
DEFAULT_UPSTREAM_DNS = os.getenv("DNSIMPLE_UPSTREAM_DNS", "8.8.8.8")
DEFAULT_UPSTREAM_PORT = int(os.getenv("DNSIMPLE_UPSTREAM_PORT", "53"))
DEFAULT_UPSTREAM_TIMEOUT = float(os.getenv("DNSIMPLE_UPSTREAM_TIMEOUT", "5.0"))

# UDPバッファサイズ（クライアントはRFC 1035の512バイト、上位DNSはEDNS応答を考慮）
MAX_QUERY_SIZE = 512
MAX_UPSTREAM_RESPONSE_SIZE = 4096

# キャッシュファイルパス
A_CACHE_PATH = os.getenv("DNSIMPLE_A_CACHE_PATH", "/var/lib/dnsimple/a_cache.json")
NS_CACHE_PATH = os.getenv("DNSIMPLE_NS_CACHE_PATH", "/var/lib/dnsimple/ns_cache.json")

# ログ設定
LOG_LEVEL = os.getenv("DNSIMPLE_LOG_LEVEL", "INFO")


def get_config_path(override: str | None = None) -> str:
    """設定ファイルパスを取得.

    Args:
        override: オーバーライドするパス（テスト用）

    Returns:
        設定ファイルパス
    """
    return override or CONFIG_PATH
