"""
이슈 트래커 연결 정보 및 스트림 열기
피드 URL, 이슈별 변경 이력 URL 생성 후 HTTP 응답 본문을 스트림으로 제공
"""

import logging

import requests
import urllib3

from errors import TransportError
from models import Issue

logger = logging.getLogger(__name__)


class TrackerStream:
    """HTTP 응답 본문 (response.raw)을 read()/close()로 읽는 바이트 스트림"""

    def __init__(self, response: requests.Response, url: str):
        self.url = url
        self.closed = False
        self._response = response
        # gzip 등 Content-Encoding은 풀어서 읽음
        response.raw.decode_content = True

    def read(self, size: int = -1) -> bytes:
        amount = None if size is None or size < 0 else size
        try:
            return self._response.raw.read(amount)
        except (requests.RequestException, urllib3.exceptions.HTTPError) as e:
            raise TransportError(f"응답 읽기 실패: {self.url} ({e})", source=self.url) from e

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._response.close()


class IssueTracker:
    """이슈 트래커 (YouTrack 호환 URL 규칙)"""

    DEFAULT_FEED_PATH = "/_rss/issues"
    DEFAULT_CHANGES_TEMPLATE = "{base_url}/rest/issue/{key}/changes"

    def __init__(
        self,
        base_url: str,
        feed_url: str = None,
        changes_url_template: str = None,
        timeout: int = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self._feed_url = feed_url
        self.changes_url_template = changes_url_template or self.DEFAULT_CHANGES_TEMPLATE
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: dict) -> "IssueTracker":
        """설정의 tracker 섹션으로 생성"""
        base_url = config.get("base_url")
        if not base_url:
            raise ValueError("tracker.base_url 설정 필요")

        return cls(
            base_url=base_url,
            feed_url=config.get("feed_url"),
            changes_url_template=config.get("changes_url_template"),
            timeout=config.get("timeout", 30),
        )

    @property
    def feed_url(self) -> str:
        return self._feed_url or f"{self.base_url}{self.DEFAULT_FEED_PATH}"

    def changes_url(self, issue: Issue) -> str:
        """이슈 변경 이력 URL"""
        return self.changes_url_template.format(
            base_url=self.base_url,
            key=issue.key,
            prefix=issue.prefix,
            number=issue.number,
        )

    def open_feed_stream(self) -> TrackerStream:
        return self._open(self.feed_url)

    def open_changes_stream(self, issue: Issue) -> TrackerStream:
        return self._open(self.changes_url(issue))

    def _open(self, url: str) -> TrackerStream:
        """GET 요청 후 본문 스트림 반환 (재시도 없음)"""
        logger.debug(f"스트림 열기: {url}")
        try:
            response = requests.get(
                url,
                headers={"Accept": "application/xml"},
                stream=True,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"요청 실패: {url} ({e})", source=url) from e

        if response.status_code != 200:
            response.close()
            raise TransportError(f"응답 오류: {url} ({response.status_code})", source=url)

        return TrackerStream(response, url)
