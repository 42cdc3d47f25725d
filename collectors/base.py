"""
스트림 수집기 베이스 클래스
"""

import logging
from abc import ABC, abstractmethod
from contextlib import closing
from typing import Any, BinaryIO

from errors import TrackerFeedError, TransportError
from .xml_cursor import XmlCursor

logger = logging.getLogger(__name__)


class StreamCollector(ABC):
    """XML 스트림 하나를 읽어 결과를 만드는 수집기 추상 베이스 클래스"""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """소스 이름 (feed, changes)"""
        pass

    @abstractmethod
    def _new_result(self) -> Any:
        """빈 결과 객체 생성"""
        pass

    @abstractmethod
    def _collect(self, cursor: XmlCursor, result: Any, **options) -> None:
        """커서를 따라가며 result를 채움"""
        pass

    def _finish(self, result: Any) -> Any:
        """수집 종료 후 결과 정리 (정렬 등)"""
        return result

    def collect(self, stream: BinaryIO, label: str = None, **options) -> Any:
        """
        스트림을 끝까지 (또는 조기 종료 시점까지) 읽고 결과 반환

        스트림은 성공/실패와 무관하게 정확히 한 번 닫는다.
        스트림 단위 실패는 그때까지 수집된 결과(partial)와 함께 예외로 전달.
        """
        label = label or self.source_name
        result = self._new_result()

        with closing(stream):
            try:
                cursor = XmlCursor(stream)
                self._collect(cursor, result, **options)
            except TrackerFeedError as e:
                if e.partial is None:
                    e.partial = self._finish(result)
                if e.source is None:
                    e.source = label
                logger.error(f"[{label}] 수집 중단: {e}")
                raise
            except OSError as e:
                logger.error(f"[{label}] 스트림 읽기 실패: {e}")
                raise TransportError(
                    f"스트림 읽기 실패: {e}",
                    partial=self._finish(result),
                    source=label,
                ) from e

        return self._finish(result)

    def _report(self, result: Any, failure) -> None:
        """격리된 실패를 결과에 기록"""
        result.failures.append(failure)
        logger.warning(f"[{self.source_name}] 항목 처리 실패 {failure}")
