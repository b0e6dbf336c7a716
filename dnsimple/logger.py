"""統合ログシステム - DNS、キャッシュ、永続化のログを統一フォーマットで出力."""

import logging
import sys
from enum import Enum

import structlog


class LogLevel(str, Enum):
    """ログレベル."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ComponentType(str, Enum):
    """コンポーネント種別."""

    DNS = "DNS"
    CACHE = "CACHE"
    PERSISTENCE = "PERSISTENCE"
    SYSTEM = "SYSTEM"


def setup_logging(log_level: str = "INFO") -> None:
    """ログシステムの初期化."""
    # Pythonの標準loggingモジュールの設定
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # structlogの設定
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(component: ComponentType) -> structlog.BoundLogger:
    """コンポーネント別ロガーを取得."""
    logger = structlog.get_logger()
    return logger.bind(component=component.value)


def log_dns_query(
    client_ip: str,
    query_domain: str,
    query_type: str,
    source: str,
    answer_count: int,
) -> None:
    """DNS クエリログ.

    Args:
        client_ip: クライアントIP
        query_domain: クエリドメイン
        query_type: クエリタイプ（A, NS等）
        source: 応答元（"cache" または "upstream"）
        answer_count: 回答レコード数
    """
    logger = get_logger(ComponentType.DNS)
    logger.info(
        "DNS query",
        client_ip=client_ip,
        query_domain=query_domain,
        query_type=query_type,
        source=source,
        answer_count=answer_count,
    )


def log_cache_event(event: str, **kwargs: str) -> None:
    """キャッシュイベントログ（ヒット/ミス等、DEBUGレベル）."""
    logger = get_logger(ComponentType.CACHE)
    logger.debug(event, **kwargs)


def log_system_event(event: str, **kwargs: str) -> None:
    """システムイベントログ."""
    logger = get_logger(ComponentType.SYSTEM)
    logger.info(event, **kwargs)


def log_error(component: ComponentType, error: str, **kwargs: str) -> None:
    """エラーログ."""
    logger = get_logger(component)
    logger.error(error, **kwargs)
