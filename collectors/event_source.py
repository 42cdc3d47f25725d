"""
이슈 이벤트 소스
피드 스캔 + 이슈별 변경 이력 조회를 묶어 "무엇이 바뀌었는지" 제공
"""

import logging
from datetime import datetime
from typing import Optional

from errors import TrackerFeedError
from models import ChangeResult, Failure, FeedEntry, ScanResult
from tracker import IssueTracker
from .change_history import ChangeHistoryParser
from .feed_scanner import FeedScanner

logger = logging.getLogger(__name__)


class IssueEventSource:
    """
    이슈 트래커 이벤트 소스

    last_event는 호출자가 관리한다. latest_events()는 이를 읽기만 하고
    반환된 항목을 처리한 뒤 호출자가 직접 갱신한다.
    """

    def __init__(
        self,
        tracker: IssueTracker,
        last_event: Optional[FeedEntry] = None,
        scanner: FeedScanner = None,
        parser: ChangeHistoryParser = None,
    ):
        self.tracker = tracker
        self.last_event = last_event
        self.scanner = scanner or FeedScanner()
        self.parser = parser or ChangeHistoryParser()

    def latest_events(self) -> ScanResult:
        """마지막으로 본 항목 이후의 피드 항목 (오래된 것부터)"""
        stream = self.tracker.open_feed_stream()
        return self.scanner.scan(stream, self.last_event, label="feed")

    def changes(self, event: FeedEntry, since: Optional[datetime] = None) -> ChangeResult:
        """항목 이슈의 변경 이력 (since 이후만)"""
        stream = self.tracker.open_changes_stream(event.issue)
        return self.parser.extract_changes(stream, since, label=f"changes:{event.issue}")

    def latest_changes(self, since: Optional[datetime] = None) -> ChangeResult:
        """
        새 피드 항목 전체의 변경 이력을 이어 붙여 반환

        이슈 하나의 이력 스트림이 실패해도 (연결 실패, 깨진 XML) Failure로 기록하고
        나머지 이슈는 계속 조회한다. 피드 자체의 실패는 그대로 전파.
        """
        scan = self.latest_events()
        merged = ChangeResult(failures=list(scan.failures))
        for position, event in enumerate(scan.entries, start=1):
            try:
                merged.extend(self.changes(event, since))
            except TrackerFeedError as e:
                logger.warning(f"이슈 {event.issue} 변경 이력 조회 실패: {e}")
                if e.partial is not None:
                    merged.extend(e.partial)
                merged.failures.append(Failure(position=position, error=e, context=str(event.issue)))

        logger.info(f"이슈 {len(scan.entries)}개에서 변경 {len(merged.changes)}건 수집")
        return merged
