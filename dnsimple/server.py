"""DNSサーバーモジュール - UDP/53でクエリを受け付け、解決エンジンに渡して応答を返す."""

import asyncio
import contextlib
import ipaddress
import socket

from . import constants
from .cache import RecordCache
from .config import Config
from .errors import QueryError, ServerStartupError, UpstreamError
from .logger import ComponentType, log_dns_query, log_error, log_system_event
from .persistence import load_cache_pair, save_cache_pair
from .records import ARecord, NSRecord
from .resolver import Resolution, ResolutionEngine


class DNSServer:
    """キャッシュDNSフォワーダー（UDP/53）.

    AキャッシュとNSキャッシュの所有者。起動時にファイルから読み込み、
    上位DNS応答でキャッシュを更新するたびと停止時に保存する。
    """

    def __init__(self, config: Config | None = None):
        """初期化.

        Args:
            config: 設定（未指定時はデフォルト設定）
        """
        self.config = config or Config()
        self.running = False
        self._sock: socket.socket | None = None
        self._receiver_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._stopped = False

        # 両方のファイルを読み込めた場合のみ復元する
        loaded = load_cache_pair(self.config.a_cache_path, self.config.ns_cache_path)
        if loaded is None:
            log_system_event("Creating default cache")
            self.a_cache: RecordCache[ARecord] = RecordCache("A")
            self.ns_cache: RecordCache[NSRecord] = RecordCache("NS")
        else:
            self.a_cache, self.ns_cache = loaded

        self.engine = ResolutionEngine(
            self.a_cache,
            self.ns_cache,
            upstream_dns=self.config.upstream_dns,
            upstream_port=self.config.upstream_port,
            upstream_timeout=self.config.upstream_timeout,
            persist=self.save_caches,
        )

    @property
    def address(self) -> tuple[str, int] | None:
        """バインド中のアドレス（未起動時はNone）."""
        if self._sock is None:
            return None
        return self._sock.getsockname()[:2]

    def save_caches(self) -> bool:
        """両キャッシュをファイルに保存（失敗はログのみ）."""
        return save_cache_pair(
            self.a_cache,
            self.ns_cache,
            self.config.a_cache_path,
            self.config.ns_cache_path,
        )

    def get_cache_stats(self) -> dict[str, dict[str, int | float]]:
        """キャッシュ統計を取得."""
        return {
            "A": self.a_cache.get_stats(),
            "NS": self.ns_cache.get_stats(),
        }

    def _bind(self) -> socket.socket:
        """UDPソケットを作成してバインド.

        Raises:
            ServerStartupError: バインドに失敗した場合
        """
        family = (
            socket.AF_INET6
            if ipaddress.ip_address(self.config.bind_address).version == 6
            else socket.AF_INET
        )
        sock = socket.socket(family, socket.SOCK_DGRAM)
        try:
            sock.bind((self.config.bind_address, self.config.port))
        except OSError as e:
            sock.close()
            log_error(
                ComponentType.DNS,
                f"Failed to bind DNS server to {self.config.bind_address}:{self.config.port}: {e}",
            )
            raise ServerStartupError(
                f"Cannot bind UDP {self.config.bind_address}:{self.config.port}: {e}"
            ) from e

        sock.setblocking(False)
        return sock

    async def handle_datagram(self, data: bytes, client_addr: tuple[str, int]) -> bytes | None:
        """1件のクエリを処理して応答を送信.

        例外はここで捕捉してログに記録するため、1件の不正なクエリや転送失敗で
        サーバーが停止することはない。上位DNSへの転送に失敗した場合は応答を送らない。

        Args:
            data: クエリデータ
            client_addr: クライアントアドレス

        Returns:
            送信したレスポンス（送信しなかった場合None）
        """
        try:
            resolution: Resolution = await self.engine.resolve(data)
        except QueryError as e:
            log_error(ComponentType.DNS, f"Malformed query from {client_addr[0]}: {e}")
            return None
        except UpstreamError as e:
            log_error(ComponentType.DNS, f"Dropping query from {client_addr[0]}: {e}")
            return None
        except Exception as e:
            log_error(ComponentType.DNS, f"Error handling query from {client_addr[0]}: {e}")
            return None

        try:
            loop = asyncio.get_event_loop()
            await loop.sock_sendto(self._sock, resolution.data, client_addr)
        except OSError as e:
            log_error(ComponentType.DNS, f"Failed to send response to {client_addr[0]}: {e}")
            return None

        log_dns_query(
            client_ip=client_addr[0],
            query_domain=resolution.query_name,
            query_type=resolution.query_type,
            source=resolution.source,
            answer_count=resolution.answer_count,
        )
        return resolution.data

    async def _receive_loop(self) -> None:
        """UDPリスナーループ（クエリごとにタスクを起動）."""
        loop = asyncio.get_event_loop()

        while self.running:
            try:
                data, addr = await loop.sock_recvfrom(self._sock, constants.MAX_QUERY_SIZE)
            except OSError as e:
                log_error(ComponentType.DNS, f"Error receiving query: {e}")
                continue

            task = asyncio.create_task(self.handle_datagram(data, addr))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def start(self) -> None:
        """DNSサーバーを起動（request_stop()が呼ばれるまで戻らない）.

        Raises:
            ServerStartupError: ソケットのバインドに失敗した場合
        """
        self._sock = self._bind()
        self.running = True

        log_system_event(
            "DNS server started",
            bind_ip=self.config.bind_address,
            port=str(self.address[1]),
            upstream=f"{self.config.upstream_dns}:{self.config.upstream_port}",
            upstream_timeout=str(self.config.upstream_timeout),
            a_cache_keys=str(len(self.a_cache)),
            ns_cache_keys=str(len(self.ns_cache)),
        )

        self._receiver_task = asyncio.create_task(self._receive_loop())
        try:
            await self._receiver_task
        except asyncio.CancelledError:
            # request_stop()による停止以外のキャンセルは呼び出し元に伝える
            if self.running:
                raise

    def request_stop(self) -> None:
        """受信ループの停止を要求（シグナルハンドラから呼ばれる）."""
        self.running = False
        if self._receiver_task and not self._receiver_task.done():
            self._receiver_task.cancel()

    async def stop(self) -> None:
        """DNSサーバーを停止.

        処理中のクエリを待ってから両キャッシュを保存し、ソケットを閉じる。
        """
        if self._stopped:
            return
        self._stopped = True

        self.request_stop()
        if self._receiver_task:
            with contextlib.suppress(asyncio.CancelledError):
                await self._receiver_task

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self.save_caches()

        if self._sock:
            self._sock.close()
            self._sock = None

        log_system_event("DNS server stopped")

    async def __aenter__(self) -> "DNSServer":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
