"""例外定義 - クエリ処理・上位DNS・永続化・起動の各失敗を分類."""


class DNSimpleError(Exception):
    """dnsimpleの基底例外."""


class QueryError(DNSimpleError):
    """不正なクエリ（デコード失敗、質問セクションなし）."""


class UpstreamError(DNSimpleError):
    """上位DNSへの転送失敗（到達不能、タイムアウト、不正な応答）."""


class PersistenceError(DNSimpleError):
    """キャッシュファイルの保存失敗."""


class ServerStartupError(DNSimpleError):
    """リスニングソケットのバインド失敗."""
