#!/usr/bin/env python3
"""
Issue Tracker Feed Sync
이슈 트래커 피드를 주기적으로 읽어 변경 내역을 Slack으로 알림 발송
"""

import argparse
import logging
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import yaml

# 로깅 설정
logging.basicConfig(
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    level=logging.INFO
)
logger = logging.getLogger(__name__)

from collectors import IssueEventSource
from errors import TrackerFeedError
from models import Failure
from notifier import SlackNotifier
from tracker import IssueTracker


def load_config(config_path: str = None) -> dict:
    """설정 파일 로드"""
    if config_path is None:
        config_path = Path(__file__).parent / "config.yaml"

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def build_source(config: dict) -> IssueEventSource:
    """설정으로 이벤트 소스 생성"""
    tracker = IssueTracker.from_config(config.get("tracker", {}))
    return IssueEventSource(tracker)


def build_notifier(config: dict) -> Optional[SlackNotifier]:
    slack_config = config.get("slack", {})
    if not slack_config.get("enabled", True):
        return None
    return SlackNotifier(mention_users=slack_config.get("mention_users", []))


def run_poll(
    source: IssueEventSource,
    notifier: Optional[SlackNotifier] = None,
    since: Optional[datetime] = None,
    dry_run: bool = False,
    verbose: bool = False,
) -> dict:
    """
    한 번 폴링: 새 피드 항목 → 이슈별 변경 이력 → 알림 → last_event 갱신

    Args:
        since: 이 시각 이후 변경만. None이면 직전 기준 항목의 발행 시간 사용
    """
    stats = {
        "events": 0,
        "changes": 0,
        "failures": 0,
        "notified": 0,
    }

    # 1. 피드 스캔
    scan = source.latest_events()
    stats["events"] = len(scan.entries)
    failures = list(scan.failures)
    logger.info(f"[1/3] 새 피드 항목: {len(scan.entries)}개")

    if since is None and source.last_event is not None:
        since = source.last_event.published_at

    # 2. 변경 이력 + 알림
    logger.info("[2/3] 변경 이력 조회 중...")
    handled = None
    for position, entry in enumerate(scan.entries, start=1):
        try:
            result = source.changes(entry, since)
        except TrackerFeedError as e:
            # 이 항목부터는 다음 폴링에서 다시 처리 (이미 알린 항목은 재발송 없음)
            logger.warning(f"      {entry.issue} 변경 이력 조회 실패, 이후 항목은 다음 폴링으로: {e}")
            failures.append(Failure(position=position, error=e, context=str(entry.issue)))
            break

        stats["changes"] += len(result.changes)
        failures.extend(result.failures)

        if verbose:
            for change in result.changes:
                logger.info(f"        - {entry.issue} {change.field_name}: {change.prior_value} → {change.current_value}")

        if notifier and result.changes:
            if notifier.send_changes(entry, result.changes, dry_run=dry_run):
                stats["notified"] += 1
        handled = entry

    stats["failures"] = len(failures)
    if failures:
        for failure in failures:
            logger.warning(f"      처리 실패 {failure}")
        if notifier:
            notifier.send_failures(failures, dry_run=dry_run)

    # 3. 기준 항목 갱신 (끝까지 처리한 항목까지만)
    if handled is not None:
        source.last_event = handled
    logger.info(f"[3/3] 완료 - 항목: {stats['events']} → 변경: {stats['changes']} → 알림: {stats['notified']} (실패 {stats['failures']})")

    return stats


def run_forever(
    source: IssueEventSource,
    notifier: Optional[SlackNotifier],
    interval: int,
    since: Optional[datetime] = None,
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    """interval초마다 폴링 (실패 시 다음 주기에 다시 시도, 백오프 없음)"""
    while True:
        try:
            run_poll(source, notifier, since, dry_run, verbose)
        except TrackerFeedError as e:
            logger.error(f"폴링 실패 ({e.source}): {e}")
        # 첫 폴링 이후에는 last_event 기준
        since = None
        time.sleep(interval)


def main():
    parser = argparse.ArgumentParser(description="Issue Tracker Feed Sync")
    parser.add_argument("--config", "-c", help="설정 파일 경로")
    parser.add_argument("--dry-run", action="store_true", help="알림 발송 없이 테스트")
    parser.add_argument("--verbose", "-v", action="store_true", help="상세 출력")
    parser.add_argument("--interval", type=int, help="폴링 주기 (초), 없으면 한 번만 실행")
    parser.add_argument("--since-minutes", type=int, help="첫 폴링에서 최근 N분 변경만 조회")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = load_config(args.config)
    source = build_source(config)
    notifier = build_notifier(config)

    since = None
    if args.since_minutes:
        since = datetime.now(timezone.utc) - timedelta(minutes=args.since_minutes)

    interval = args.interval or config.get("polling", {}).get("interval_seconds", 0)
    if interval:
        run_forever(source, notifier, interval, since, args.dry_run, args.verbose)
    else:
        run_poll(source, notifier, since, args.dry_run, args.verbose)


if __name__ == "__main__":
    main()
