"""
이슈 트래커 RSS 피드 스캐너
마지막으로 본 항목을 만날 때까지 피드를 읽어 FeedEntry 리스트로 변환
"""

import logging
import xml.etree.ElementTree as ET
from typing import BinaryIO, Optional

from errors import MalformedDocumentError, MalformedFieldError, XmlSyntaxError
from models import FeedEntry, Failure, ScanResult
from .base import StreamCollector
from .dates import parse_feed_date
from .xml_cursor import XmlCursor, local_name

logger = logging.getLogger(__name__)


class FeedScanner(StreamCollector):
    """RSS 피드 스캐너"""

    ITEM_TAG = "item"

    @property
    def source_name(self) -> str:
        return "feed"

    def scan(
        self,
        stream: BinaryIO,
        last_seen: Optional[FeedEntry] = None,
        label: str = None,
    ) -> ScanResult:
        """
        피드를 읽어 새 항목만 반환

        Args:
            stream: 피드 바이트 스트림 (반환 전에 닫힘)
            last_seen: 이전 스캔에서 마지막으로 반환된 항목. 같은 이슈를 만나면 중단

        Returns:
            ScanResult (entries는 오래된 것부터)
        """
        return self.collect(stream, label=label, last_seen=last_seen)

    def _new_result(self) -> ScanResult:
        return ScanResult()

    def _finish(self, result: ScanResult) -> ScanResult:
        # 피드는 최신순이므로 뒤집어서 시간순으로
        result.entries.reverse()
        return result

    def _collect(self, cursor: XmlCursor, result: ScanResult, last_seen: Optional[FeedEntry] = None) -> None:
        position = 0
        while True:
            item = cursor.next_start(self.ITEM_TAG)
            if item is None:
                break
            position += 1

            try:
                entry = self.extract_entry(cursor, item)
            except XmlSyntaxError:
                raise
            except (MalformedDocumentError, MalformedFieldError) as e:
                cursor.skip(item)
                title = _item_title(item)
                self._report(result, Failure(position=position, error=e, context=title))
                if _is_last_seen(title, last_seen):
                    # 기준 항목 자체가 깨져도 경계는 유지
                    logger.debug(f"마지막 처리 항목 도달 (추출 실패): {last_seen.issue}")
                    result.stopped_at_last_seen = True
                    break
                continue
            finally:
                if not cursor.is_open(item):
                    cursor.release(item)

            if last_seen is not None and entry == last_seen:
                # 이미 처리한 항목, 여기서 중단
                logger.debug(f"마지막 처리 항목 도달: {entry.issue}")
                result.stopped_at_last_seen = True
                break

            result.entries.append(entry)

        logger.info(f"피드에서 {len(result.entries)}개 항목 수집 (실패 {len(result.failures)}개)")

    def extract_entry(self, cursor: XmlCursor, item: ET.Element) -> FeedEntry:
        """item 요소 하나를 FeedEntry로 변환 (title, link, description, pubDate 순서 고정)"""
        title = cursor.read_text(cursor.next_child(item, "title")).strip()
        link = cursor.read_text(cursor.next_child(item, "link")).strip()
        description = cursor.read_text(cursor.next_child(item, "description"))
        published = cursor.read_text(cursor.next_child(item, "pubDate"))

        # guid 등 나머지 요소는 건너뜀
        cursor.skip(item)

        entry = FeedEntry(
            issue=FeedEntry.parse_title(title),
            title=title,
            description=description.replace("\n", "").strip(),
            link=link,
            published_at=parse_feed_date(published),
        )
        logger.debug(f"피드 항목 추출: {entry.issue} {entry.published_at.isoformat()}")
        return entry


def _item_title(item: ET.Element) -> str:
    """실패 보고용 제목 (읽을 수 있는 경우)"""
    for child in item:
        if local_name(child.tag) == "title":
            return "".join(child.itertext()).strip()
    return ""


def _is_last_seen(title: str, last_seen: Optional[FeedEntry]) -> bool:
    """추출에 실패한 항목이 제목상 last_seen과 같은 이슈인지"""
    if last_seen is None:
        return False
    try:
        return FeedEntry.parse_title(title) == last_seen.issue
    except MalformedFieldError:
        return False
