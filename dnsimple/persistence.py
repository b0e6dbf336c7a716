"""キャッシュ永続化 - レコードキャッシュをJSONファイルに保存・読み込み.

ファイルは「ドメイン名 → レコードリスト」のJSONオブジェクト。IPアドレスと
ドメイン名はテキスト表現で保存する（records.pyのIPAddress/DomainName型）。
"""

import contextlib
import os
import tempfile
from pathlib import Path
from typing import TypeVar

from pydantic import TypeAdapter, ValidationError

from .cache import RecordCache
from .errors import PersistenceError
from .logger import ComponentType, log_error, log_system_event
from .records import ARecord, NSRecord, Record

R = TypeVar("R", bound=Record)

_adapters: dict[type[Record], TypeAdapter] = {}


def _adapter(record_type: type[Record]) -> TypeAdapter:
    """レコード型ごとのTypeAdapterを取得（生成コストが高いため再利用）."""
    if record_type not in _adapters:
        _adapters[record_type] = TypeAdapter(dict[str, list[record_type]])
    return _adapters[record_type]


def dump_cache(cache: RecordCache[R], record_type: type[R]) -> bytes:
    """キャッシュをJSONバイト列に変換."""
    return _adapter(record_type).dump_json(cache.snapshot(), indent=2)


def parse_cache(data: str | bytes, record_type: type[R], name: str) -> RecordCache[R]:
    """JSONからキャッシュを生成.

    Raises:
        ValidationError: JSONが不正、またはレコードとして解釈できない場合
    """
    entries = _adapter(record_type).validate_json(data)
    return RecordCache(name, entries)


def save_cache(cache: RecordCache[R], record_type: type[R], path: str | Path) -> None:
    """キャッシュをファイルに保存.

    同じディレクトリの一時ファイルに書き込んでから置き換えるため、
    書き込み失敗時も既存ファイルは壊れない。

    Args:
        cache: 保存するキャッシュ
        record_type: レコード型
        path: 保存先パス

    Raises:
        PersistenceError: 書き込みに失敗した場合
    """
    path = Path(path)
    try:
        data = dump_cache(cache, record_type)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
    except (OSError, ValueError) as e:
        raise PersistenceError(f"Failed to save {cache.name} cache to {path}: {e}") from e


def load_cache(path: str | Path, record_type: type[R], name: str) -> RecordCache[R] | None:
    """ファイルからキャッシュを読み込む.

    ファイルがない・読めない・内容が不正な場合はエラーにせずNoneを返す。

    Args:
        path: キャッシュファイルパス
        record_type: レコード型
        name: キャッシュ名

    Returns:
        読み込んだキャッシュ（読み込めない場合None）
    """
    path = Path(path)
    if not path.exists():
        log_system_event("Cache file not found", cache=name, path=str(path))
        return None

    try:
        cache = parse_cache(path.read_bytes(), record_type, name)
    except (OSError, ValidationError) as e:
        log_error(ComponentType.PERSISTENCE, f"Failed to load {name} cache from {path}: {e}")
        return None

    log_system_event("Cache loaded", cache=name, path=str(path), keys=str(len(cache)))
    return cache


def load_cache_pair(
    a_path: str | Path, ns_path: str | Path
) -> tuple[RecordCache[ARecord], RecordCache[NSRecord]] | None:
    """AキャッシュとNSキャッシュを組で読み込む.

    どちらか一方でも読み込めなければNone（片方だけの復元はしない）。

    Returns:
        (Aキャッシュ, NSキャッシュ)のタプル、または None
    """
    a_cache = load_cache(a_path, ARecord, "A")
    if a_cache is None:
        return None

    ns_cache = load_cache(ns_path, NSRecord, "NS")
    if ns_cache is None:
        return None

    return a_cache, ns_cache


def save_cache_pair(
    a_cache: RecordCache[ARecord],
    ns_cache: RecordCache[NSRecord],
    a_path: str | Path,
    ns_path: str | Path,
) -> bool:
    """AキャッシュとNSキャッシュを保存.

    保存失敗はログに記録するだけで例外を送出しない（メモリ上のキャッシュが正となる）。

    Returns:
        両方とも保存できた場合True
    """
    success = True
    for cache, record_type, path in (
        (a_cache, ARecord, a_path),
        (ns_cache, NSRecord, ns_path),
    ):
        try:
            save_cache(cache, record_type, path)
        except PersistenceError as e:
            log_error(ComponentType.PERSISTENCE, str(e))
            success = False

    return success
