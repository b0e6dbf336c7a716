"""名前解決エンジン - キャッシュ応答と上位DNSへの転送、応答からのキャッシュ更新."""

import asyncio
import ipaddress
import socket
import time
from collections.abc import Callable
from dataclasses import dataclass
from itertools import chain

from dnslib import QTYPE, DNSError, DNSHeader, DNSQuestion, DNSRecord

from . import constants
from .cache import CacheMiss, RecordCache
from .errors import QueryError, UpstreamError
from .logger import ComponentType, get_logger, log_system_event
from .records import ARecord, NSRecord, Record


@dataclass
class Resolution:
    """クエリの解決結果."""

    request: DNSRecord
    data: bytes  # クライアントに返すレスポンス
    source: str  # "cache" または "upstream"
    answer_count: int

    @property
    def query_name(self) -> str:
        return str(self.request.q.qname)

    @property
    def query_type(self) -> str:
        return QTYPE.get(self.request.q.qtype)


class ResolutionEngine:
    """キャッシュ参照と上位DNS転送を行う解決エンジン.

    キャッシュはサーバーが所有し、コンストラクタで受け取る。
    """

    def __init__(
        self,
        a_cache: RecordCache[ARecord],
        ns_cache: RecordCache[NSRecord],
        upstream_dns: str | None = None,
        upstream_port: int | None = None,
        upstream_timeout: float | None = None,
        persist: Callable[[], object] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """初期化.

        Args:
            a_cache: Aレコードキャッシュ
            ns_cache: NSレコードキャッシュ
            upstream_dns: 上位DNSサーバーIP
            upstream_port: 上位DNSポート
            upstream_timeout: 上位DNS応答待ちタイムアウト（秒）
            persist: 上位DNS応答でキャッシュを更新した後に呼ぶ保存処理
            clock: 現在時刻を返す関数（テスト用）
        """
        self.a_cache = a_cache
        self.ns_cache = ns_cache
        self.upstream_dns = upstream_dns or constants.DEFAULT_UPSTREAM_DNS
        self.upstream_port = upstream_port or constants.DEFAULT_UPSTREAM_PORT
        self.upstream_timeout = upstream_timeout or constants.DEFAULT_UPSTREAM_TIMEOUT
        self.persist = persist
        self.clock = clock

        # キャッシュ対象のクエリタイプ
        self._caches: dict[int, RecordCache] = {
            QTYPE.A: self.a_cache,
            QTYPE.NS: self.ns_cache,
        }

    @staticmethod
    def parse_query(data: bytes) -> DNSRecord:
        """クエリをデコード.

        Raises:
            QueryError: デコード失敗、または質問セクションが空の場合
        """
        try:
            request = DNSRecord.parse(data)
        except DNSError as e:
            raise QueryError(f"Failed to decode query: {e}") from e

        if not request.questions:
            raise QueryError(f"Query #{request.header.id} has no questions")

        return request

    def lookup(self, request: DNSRecord, now: float | None = None) -> DNSRecord | None:
        """キャッシュから応答を生成（最初の質問のみ対象）.

        Args:
            request: クエリ
            now: 判定時刻

        Returns:
            キャッシュヒット時はレスポンス、ミスまたはキャッシュ対象外のタイプならNone
        """
        question = request.questions[0]
        cache = self._caches.get(question.qtype)
        if cache is None:
            return None

        result = cache.prune_and_get(str(question.qname), now)
        if isinstance(result, CacheMiss):
            return None

        return self.build_cached_response(request, question, result.records, now)

    @staticmethod
    def build_cached_response(
        request: DNSRecord,
        question: DNSQuestion,
        records: list[Record],
        now: float | None = None,
    ) -> DNSRecord:
        """キャッシュレコードからレスポンスを生成.

        ヘッダーはクエリのID、オペコード、RDフラグを引き継ぐ。回答セクションのみで、
        権威・追加セクションは空。TTLは残り時間。
        """
        header = DNSHeader(
            id=request.header.id,
            qr=1,
            opcode=request.header.opcode,
            rd=request.header.rd,
        )
        return DNSRecord(
            header,
            q=question,
            rr=[record.to_resource_record(now) for record in records],
        )

    def exchange(self, data: bytes) -> bytes:
        """上位DNSにクエリを送り、応答を1件受信（ブロッキング）.

        Raises:
            UpstreamError: タイムアウトまたは通信エラー
        """
        family = (
            socket.AF_INET6
            if ipaddress.ip_address(self.upstream_dns).version == 6
            else socket.AF_INET
        )

        try:
            with socket.socket(family, socket.SOCK_DGRAM) as sock:
                sock.settimeout(self.upstream_timeout)
                # connect()で上位DNS以外からのデータグラムを受け付けない
                sock.connect((self.upstream_dns, self.upstream_port))
                sock.send(data)
                return sock.recv(constants.MAX_UPSTREAM_RESPONSE_SIZE)
        except TimeoutError as e:
            raise UpstreamError(
                f"Upstream {self.upstream_dns} did not reply within {self.upstream_timeout}s"
            ) from e
        except OSError as e:
            raise UpstreamError(f"Upstream {self.upstream_dns} unreachable: {e}") from e

    async def forward(self, data: bytes, request: DNSRecord) -> tuple[bytes, DNSRecord]:
        """クエリをそのまま上位DNSに転送.

        Args:
            data: 元のクエリデータ
            request: デコード済みクエリ

        Returns:
            (上位DNSの応答データ, デコード済み応答)のタプル

        Raises:
            UpstreamError: 転送失敗、応答のデコード失敗、IDの不一致
        """
        loop = asyncio.get_event_loop()
        reply = await loop.run_in_executor(None, self.exchange, data)

        try:
            response = DNSRecord.parse(reply)
        except DNSError as e:
            raise UpstreamError(f"Failed to decode upstream response: {e}") from e

        if response.header.id != request.header.id:
            raise UpstreamError(
                f"Upstream response id {response.header.id} does not match query id "
                f"{request.header.id}"
            )

        return reply, response

    def populate(self, response: DNSRecord, now: float | None = None) -> dict[str, int]:
        """上位DNSの応答（回答・追加・権威セクション）からキャッシュを更新.

        A/NSレコードを追加した後でCNAMEを処理するため、同じ応答内の参照先Aレコードも
        別名で引けるようになる。参照先がキャッシュにないCNAMEは捨てる。

        Args:
            response: 上位DNSの応答
            now: レコード生成時刻

        Returns:
            追加・別名登録した件数
        """
        if now is None:
            now = self.clock()

        counts = {"a": 0, "ns": 0, "cname": 0}
        cnames = []

        for rr in chain(response.rr, response.ar, response.auth):
            if rr.rtype == QTYPE.A:
                self.a_cache.append(str(rr.rname), ARecord.from_resource_record(rr, now))
                counts["a"] += 1
            elif rr.rtype == QTYPE.NS:
                self.ns_cache.append(str(rr.rname), NSRecord.from_resource_record(rr, now))
                counts["ns"] += 1
            elif rr.rtype == QTYPE.CNAME:
                cnames.append(rr)

        # チェーン（a → b → c）は末尾側から処理
        for rr in reversed(cnames):
            if self.a_cache.alias_to(str(rr.rname), str(rr.rdata.label)):
                counts["cname"] += 1

        return counts

    async def resolve(self, data: bytes) -> Resolution:
        """クエリを解決.

        キャッシュヒット時はキャッシュから応答し、それ以外は上位DNSに転送して
        応答でキャッシュを更新・保存した上で、上位DNSの応答をそのまま返す。

        Args:
            data: クエリデータ

        Returns:
            解決結果

        Raises:
            QueryError: 不正なクエリ
            UpstreamError: 上位DNSへの転送失敗（キャッシュは更新しない）
        """
        request = self.parse_query(data)
        now = self.clock()

        cached = self.lookup(request, now)
        if cached is not None:
            return Resolution(
                request=request,
                data=cached.pack(),
                source="cache",
                answer_count=len(cached.rr),
            )

        logger = get_logger(ComponentType.DNS)
        logger.debug(
            "Forwarding query to upstream",
            query_id=request.header.id,
            domain=str(request.q.qname),
            query_type=QTYPE.get(request.q.qtype),
            upstream=self.upstream_dns,
        )

        reply, response = await self.forward(data, request)
        counts = self.populate(response, self.clock())

        if any(counts.values()):
            log_system_event(
                "DNS cache updated from upstream",
                domain=str(request.q.qname),
                a_records=str(counts["a"]),
                ns_records=str(counts["ns"]),
                aliases=str(counts["cname"]),
            )

        if self.persist is not None:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self.persist)

        return Resolution(
            request=request,
            data=reply,
            source="upstream",
            answer_count=len(response.rr),
        )
