"""TTLベースのレコードキャッシュ - ドメイン名ごとのレコードリストを保持."""

import threading
import time
from dataclasses import dataclass
from typing import Generic, TypeVar

from .logger import log_cache_event
from .records import Record

R = TypeVar("R", bound=Record)


@dataclass(frozen=True)
class CacheHit(Generic[R]):
    """キャッシュヒット（有効なレコードが1件以上）."""

    records: list[R]


@dataclass(frozen=True)
class CacheMiss:
    """キャッシュミス."""


LookupResult = CacheHit | CacheMiss


class RecordCache(Generic[R]):
    """ドメイン名 → レコードリストのキャッシュ.

    期限切れレコードはバックグラウンドで掃除せず、同じキーを参照したときに
    取り除いて書き戻す。容量上限はない。
    """

    def __init__(self, name: str, entries: dict[str, list[R]] | None = None):
        """初期化.

        Args:
            name: キャッシュ名（ログ用、"A" や "NS"）
            entries: 初期エントリ（永続化ファイルからの読み込み時）
        """
        self.name = name
        self._entries: dict[str, list[R]] = {
            key: list(records) for key, records in (entries or {}).items()
        }
        # 永続化スレッドからも参照されるためasyncio.Lockではなくthreading.Lock
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def append(self, key: str, record: R) -> None:
        """レコードを追加（重複除去はしない）.

        Args:
            key: ドメイン名
            record: 追加するレコード
        """
        with self._lock:
            self._entries.setdefault(key, []).append(record)

    def prune_and_get(self, key: str, now: float | None = None) -> LookupResult:
        """有効なレコードを取得し、期限切れレコードを取り除いて書き戻す.

        Args:
            key: ドメイン名
            now: 判定時刻（未指定時は現在時刻）

        Returns:
            有効なレコードがあればCacheHit、キーがないか全て期限切れならCacheMiss
        """
        if now is None:
            now = time.time()

        with self._lock:
            records = self._entries.get(key)
            if records is None:
                self._misses += 1
                log_cache_event("Cache miss", cache=self.name, domain=key)
                return CacheMiss()

            valid = [record for record in records if record.is_valid(now)]
            self._entries[key] = valid

            if not valid:
                self._misses += 1
                log_cache_event(
                    "Cache miss (expired)", cache=self.name, domain=key, pruned=str(len(records))
                )
                return CacheMiss()

            self._hits += 1
            log_cache_event(
                "Cache hit",
                cache=self.name,
                domain=key,
                records=str(len(valid)),
                pruned=str(len(records) - len(valid)),
            )
            return CacheHit(list(valid))

    def alias_to(self, key: str, canonical_key: str) -> bool:
        """canonical_keyのレコードをkeyでも引けるようにコピー（CNAME用）.

        コピー時点のスナップショットであり、以後の各キーへの変更は互いに影響しない。

        Args:
            key: 別名（CNAMEの所有者名）
            canonical_key: 正規名（CNAMEの参照先）

        Returns:
            コピーした場合True（正規名がキャッシュにない場合False）
        """
        with self._lock:
            records = self._entries.get(canonical_key)
            if not records:
                return False
            self._entries[key] = list(records)

        log_cache_event("Cache alias", cache=self.name, alias=key, canonical=canonical_key)
        return True

    def get(self, key: str) -> list[R] | None:
        """期限判定なしでレコードリストのコピーを取得."""
        with self._lock:
            records = self._entries.get(key)
            return list(records) if records is not None else None

    def snapshot(self) -> dict[str, list[R]]:
        """永続化用にキャッシュ全体のコピーを取得."""
        with self._lock:
            return {key: list(records) for key, records in self._entries.items()}

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> dict[str, int | float]:
        """キャッシュ統計を取得.

        Returns:
            キー数、レコード数、ヒット数、ミス数、ヒット率
        """
        with self._lock:
            record_count = sum(len(records) for records in self._entries.values())
            return {
                "keys": len(self._entries),
                "records": record_count,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": (
                    round(self._hits / (self._hits + self._misses) * 100, 2)
                    if (self._hits + self._misses) > 0
                    else 0.0
                ),
            }

