"""
Slack 알림 발송
이슈별 변경 내역을 채널로 전달
"""

import logging
import os
from typing import List

import requests

from models import ChangeRecord, Failure, FeedEntry

logger = logging.getLogger(__name__)


class SlackNotifier:
    """Slack 알림 발송기"""

    MAX_BLOCKS = 50
    EMPTY_VALUE = "_(없음)_"

    def __init__(
        self,
        webhook_url: str = None,
        mention_users: List[str] = None,
    ):
        self.webhook_url = webhook_url or os.environ.get("SLACK_WEBHOOK_URL")
        if not self.webhook_url:
            logger.warning("SLACK_WEBHOOK_URL이 설정되지 않음")

        self.mention_users = mention_users or []

    def send_changes(
        self,
        entry: FeedEntry,
        changes: List[ChangeRecord],
        dry_run: bool = False,
    ) -> bool:
        """이슈 하나의 변경 내역 발송"""
        if not changes:
            return True

        if not self.webhook_url and not dry_run:
            logger.warning("Webhook URL 없음, 알림 스킵")
            return False

        message = {"blocks": self.build_change_blocks(entry, changes)}

        if dry_run:
            logger.info(f"[DRY-RUN] 변경 알림: {entry.issue} {len(changes)}건")
            return True

        return self._send(message)

    def build_change_blocks(self, entry: FeedEntry, changes: List[ChangeRecord]) -> List[dict]:
        """Block Kit 메시지 구성"""
        title = entry.title if len(entry.title) <= 140 else entry.title[:137] + "..."
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f":pencil2: {title}"},
            },
        ]

        for change in changes:
            prior = change.prior_value or self.EMPTY_VALUE
            current = change.current_value or self.EMPTY_VALUE
            updated = change.updated_at.strftime("%Y-%m-%d %H:%M UTC")
            blocks.append({
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*{change.field_name}*: {prior} → {current}\n"
                           f"• {change.updated_by or '알 수 없음'} ({updated})",
                },
            })

        # Slack 블록 제한 (50개) 처리
        footer_count = 2 if self.mention_users else 1
        limit = self.MAX_BLOCKS - footer_count
        if len(blocks) > limit:
            hidden = len(blocks) - (limit - 1)
            blocks = blocks[:limit - 1]
            blocks.append({
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"... 외 {hidden}건"}],
            })

        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f":link: <{entry.link}|{entry.issue} 보기>"},
        })

        if self.mention_users:
            blocks.append({
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": " ".join(f"@{user}" for user in self.mention_users)}],
            })

        return blocks

    def send_failures(self, failures: List[Failure], dry_run: bool = False) -> bool:
        """파싱 실패 요약 발송"""
        if not failures:
            return True

        if not self.webhook_url and not dry_run:
            logger.warning("Webhook URL 없음, 알림 스킵")
            return False

        lines = [f"• {failure}" for failure in failures[:20]]
        if len(failures) > 20:
            lines.append(f"... 외 {len(failures) - 20}건")

        message = {
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": f":warning: 피드 처리 실패 ({len(failures)}건)"},
                },
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": "\n".join(lines)},
                },
            ],
        }

        if dry_run:
            logger.info(f"[DRY-RUN] 실패 알림: {len(failures)}건")
            return True

        return self._send(message)

    def _send(self, message: dict) -> bool:
        """Slack webhook으로 메시지 발송"""
        try:
            response = requests.post(
                self.webhook_url,
                json=message,
                timeout=10,
            )
        except requests.RequestException as e:
            logger.error(f"Slack 알림 발송 오류: {e}")
            return False

        if response.status_code == 200:
            logger.info("Slack 알림 발송 성공")
            return True

        logger.error(f"Slack 알림 실패: {response.status_code} - {response.text}")
        return False
