"""
이슈 트래커 피드 수집 예외 정의
"""

from typing import Any, Optional


class TrackerFeedError(Exception):
    """피드/변경 이력 수집 예외의 공통 베이스"""

    def __init__(self, message: str, partial: Any = None, source: Optional[str] = None):
        super().__init__(message)
        self.partial = partial   # 중단 전까지 수집된 결과 (ScanResult | ChangeResult)
        self.source = source     # feed | changes:PROJ-1 등


class TransportError(TrackerFeedError):
    """스트림을 열거나 끝까지 읽지 못함 - 호출 전체 중단"""


class MalformedDocumentError(TrackerFeedError):
    """문서 구조가 기대한 요소 순서와 다름"""


class MalformedFieldError(TrackerFeedError):
    """제목/숫자/타임스탬프 등 개별 필드 값 오류"""


class DateParseError(MalformedFieldError):
    """날짜 문자열 파싱 실패"""


class XmlSyntaxError(MalformedDocumentError):
    """XML 자체가 잘못되어 더 읽을 수 없음 - 스트림 단위 실패"""
