"""
공통 데이터 모델 정의
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from errors import MalformedFieldError


@dataclass(frozen=True)
class Issue:
    """이슈 식별자 (프로젝트 prefix + 번호)"""
    prefix: str                  # PROJ
    number: int                  # 42

    @property
    def key(self) -> str:
        return f"{self.prefix}-{self.number}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True, eq=False)
class FeedEntry:
    """피드 항목 하나 (이슈 상태 스냅샷)"""
    issue: Issue                 # 제목에서 파싱한 이슈 식별자
    title: str                   # 제목 원문
    description: str             # 설명 (개행 제거, trim)
    link: str                    # 이슈 링크
    published_at: datetime       # 발행 시간 (UTC)

    # 중복 판단은 이슈 식별자로만
    def __eq__(self, other) -> bool:
        if not isinstance(other, FeedEntry):
            return NotImplemented
        return self.issue == other.issue

    def __hash__(self) -> int:
        return hash(self.issue)

    @staticmethod
    def parse_title(title: str) -> Issue:
        """'PREFIX-NUMBER: 내용' 형식의 제목에서 이슈 식별자 추출"""
        dash = title.find("-")
        colon = title.find(":")
        if dash < 0 or colon < 0 or colon < dash:
            raise MalformedFieldError(f"제목 형식 오류 (PREFIX-NUMBER: ...): {title!r}")

        prefix = title[:dash].strip()
        number_text = title[dash + 1:colon].strip()
        if not prefix or not (number_text.isascii() and number_text.isdigit()):
            raise MalformedFieldError(f"제목 형식 오류 (PREFIX-NUMBER: ...): {title!r}")

        return Issue(prefix=prefix, number=int(number_text))


@dataclass(frozen=True)
class ChangeRecord:
    """변경 이력의 필드 변경 하나"""
    field_name: str
    prior_value: Optional[str]   # 최초 입력이면 None
    current_value: Optional[str]
    updated_by: Optional[str]
    updated_at: datetime         # 필수

    def __post_init__(self):
        if self.updated_at is None:
            raise MalformedFieldError(f"변경 시간 없음: {self.field_name}")


class FieldKind(Enum):
    """변경 이력 field 요소의 인코딩 종류"""
    CHANGE = "ChangeField"       # oldValue/newValue 쌍
    PLAIN = "SingleField"        # value 하나 (updaterName, updated 등)

    @classmethod
    def from_marker(cls, marker: Optional[str]) -> "FieldKind":
        """xsi:type 값으로 종류 결정 (xs:ChangeField 같은 prefix 허용)"""
        if not marker:
            return cls.PLAIN
        local = marker.rsplit(":", 1)[-1].strip()
        return cls.CHANGE if local == cls.CHANGE.value else cls.PLAIN


@dataclass
class Failure:
    """항목/그룹 단위로 격리된 실패"""
    position: int                # 문서 내 몇 번째 item/change인지 (1부터)
    error: Exception
    context: str = ""            # 제목 등 식별 정보

    def __str__(self) -> str:
        where = f" ({self.context})" if self.context else ""
        return f"#{self.position}{where}: {self.error}"


@dataclass
class ScanResult:
    """피드 스캔 결과"""
    entries: List[FeedEntry] = field(default_factory=list)   # 오래된 것부터
    failures: List[Failure] = field(default_factory=list)
    stopped_at_last_seen: bool = False

    @property
    def newest(self) -> Optional[FeedEntry]:
        return self.entries[-1] if self.entries else None

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class ChangeResult:
    """변경 이력 추출 결과"""
    changes: List[ChangeRecord] = field(default_factory=list)  # 등장 순서
    failures: List[Failure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def extend(self, other: "ChangeResult") -> None:
        """다른 이슈의 결과를 이어 붙임"""
        self.changes.extend(other.changes)
        self.failures.extend(other.failures)
