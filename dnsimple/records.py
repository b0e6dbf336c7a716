"""レコードモデル - キャッシュされるA/NSレコードとTTL判定、DNSワイヤ形式との変換."""

import ipaddress
import time
from typing import Annotated, Any, ClassVar

from dnslib import NS, QTYPE, RR, A, DNSLabel
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer


def _to_domain_text(value: Any) -> str:
    """ドメイン名を正規テキスト形式に変換（DNSLabelは末尾ドット付きの文字列になる）."""
    if isinstance(value, DNSLabel):
        return str(value)
    if isinstance(value, str):
        return value
    raise ValueError(f"Invalid domain name: {value!r}")


def _to_ipv4(value: Any) -> ipaddress.IPv4Address:
    """IPv4アドレスに変換（文字列、dnslibのA rdataを受け付ける）."""
    if isinstance(value, ipaddress.IPv4Address):
        return value
    try:
        return ipaddress.IPv4Address(str(value))
    except ValueError as e:
        raise ValueError(f"Invalid IPv4 address: {value!r}") from e


# 永続化時はどちらもテキスト表現で保存し、読み込み時に元の型へ戻す
DomainName = Annotated[str, BeforeValidator(_to_domain_text)]
IPAddress = Annotated[
    ipaddress.IPv4Address,
    BeforeValidator(_to_ipv4),
    PlainSerializer(str, return_type=str),
]


class Record(BaseModel):
    """キャッシュレコード基底クラス.

    レコードは生成時刻とTTLを持ち、生成時刻 + TTL が現在時刻より後であれば有効。
    等価性は識別フィールドのみで判定し、TTLや生成時刻は含めない。
    """

    model_config = ConfigDict(frozen=True)

    rtype: ClassVar[int]

    ttl: int = Field(ge=0, description="TTL（秒）")
    creation_time: float = Field(description="キャッシュ生成時刻（UNIX時刻）")

    @property
    def expires_at(self) -> float:
        """期限切れになる時刻."""
        return self.creation_time + self.ttl

    def is_valid(self, now: float | None = None) -> bool:
        """レコードが有効（期限切れでない）か判定.

        Args:
            now: 判定時刻（未指定時は現在時刻）

        Returns:
            有効な場合True
        """
        if now is None:
            now = time.time()
        return self.expires_at > now

    def remaining_ttl(self, now: float | None = None) -> int:
        """残りTTL（秒、切り捨て、0未満にはならない）."""
        if now is None:
            now = time.time()
        return max(0, int(self.expires_at - now))

    def identity(self) -> tuple:
        """等価性判定に使う識別フィールド."""
        raise NotImplementedError

    def rdata(self) -> Any:
        """dnslibのrdataを生成."""
        raise NotImplementedError

    def to_resource_record(self, now: float | None = None) -> RR:
        """DNSリソースレコードに変換（TTLは残り時間）.

        Args:
            now: 変換時刻（未指定時は現在時刻）

        Returns:
            dnslibのRR
        """
        return RR(
            rname=self.identity()[0],
            rtype=self.rtype,
            rdata=self.rdata(),
            ttl=self.remaining_ttl(now),
        )

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.identity() == other.identity()

    def __hash__(self) -> int:
        return hash((type(self).__name__, *self.identity()))


class ARecord(Record):
    """Aレコード."""

    rtype: ClassVar[int] = QTYPE.A

    ip: IPAddress
    domain: DomainName

    def identity(self) -> tuple:
        return (self.domain, self.ip)

    def rdata(self) -> A:
        return A(str(self.ip))

    @classmethod
    def from_resource_record(cls, rr: RR, now: float | None = None) -> "ARecord":
        """dnslibのAリソースレコードから生成（生成時刻は変換時刻）."""
        if rr.rtype != QTYPE.A:
            raise ValueError(f"Not an A record: {QTYPE.get(rr.rtype)}")
        return cls(
            ttl=rr.ttl,
            creation_time=time.time() if now is None else now,
            ip=rr.rdata,
            domain=rr.rname,
        )


class NSRecord(Record):
    """NSレコード."""

    rtype: ClassVar[int] = QTYPE.NS

    domain: DomainName
    ns_domain: DomainName

    def identity(self) -> tuple:
        return (self.domain, self.ns_domain)

    def rdata(self) -> NS:
        return NS(self.ns_domain)

    @classmethod
    def from_resource_record(cls, rr: RR, now: float | None = None) -> "NSRecord":
        """dnslibのNSリソースレコードから生成（生成時刻は変換時刻）."""
        if rr.rtype != QTYPE.NS:
            raise ValueError(f"Not an NS record: {QTYPE.get(rr.rtype)}")
        return cls(
            ttl=rr.ttl,
            creation_time=time.time() if now is None else now,
            domain=rr.rname,
            ns_domain=rr.rdata.label,
        )
