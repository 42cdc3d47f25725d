"""
피드 날짜 파서
RSS pubDate ("Mon, 01 Jan 2024 10:00:00 UTC") 및 epoch 밀리초 문자열 처리
"""

import re
from datetime import datetime, timedelta, timezone

from errors import DateParseError

# 로케일과 무관하게 영문 이름으로 파싱
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTHS = {
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4, "May": 5, "Jun": 6,
    "Jul": 7, "Aug": 8, "Sep": 9, "Oct": 10, "Nov": 11, "Dec": 12,
}

FEED_DATE_PATTERN = re.compile(
    r"^(?P<weekday>[A-Za-z]{3}),\s+(?P<day>\d{1,2})\s+(?P<month>[A-Za-z]{3})\s+"
    r"(?P<year>\d{4})\s+(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})(?:\s+\S+)?$"
)

TIMEZONE_MARKER = "UT"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def strip_timezone_suffix(text: str) -> str:
    """'UT'로 시작하는 시간대 접미사 (UT, UTC) 제거"""
    index = text.find(TIMEZONE_MARKER)
    if index >= 0:
        text = text[:index]
    return text.strip()


def parse_feed_date(text: str) -> datetime:
    """
    RSS pubDate를 UTC datetime으로 변환

    시각 뒤의 시간대 토큰 (GMT, +0000 등)은 무시하고 항상 UTC로 해석
    """
    if text is None:
        raise DateParseError("발행 시간 없음")

    match = FEED_DATE_PATTERN.match(strip_timezone_suffix(text))
    if not match:
        raise DateParseError(f"날짜 형식 오류: {text!r}")

    weekday = match.group("weekday").title()
    month = MONTHS.get(match.group("month").title())
    if weekday not in WEEKDAYS or month is None:
        raise DateParseError(f"날짜 형식 오류: {text!r}")

    try:
        return datetime(
            int(match.group("year")),
            month,
            int(match.group("day")),
            int(match.group("hour")),
            int(match.group("minute")),
            int(match.group("second")),
            tzinfo=timezone.utc,
        )
    except ValueError as e:
        raise DateParseError(f"날짜 값 오류: {text!r} ({e})") from e


def parse_epoch_millis(text: str) -> datetime:
    """epoch 밀리초 문자열 (1700000000000)을 UTC datetime으로 변환"""
    if text is None:
        raise DateParseError("타임스탬프 없음")

    value = text.strip()
    if not re.fullmatch(r"[+-]?[0-9]+", value):
        raise DateParseError(f"타임스탬프 형식 오류: {text!r}")

    millis = int(value)
    if not INT64_MIN <= millis <= INT64_MAX:
        raise DateParseError(f"타임스탬프 범위 초과: {text!r}")

    try:
        return EPOCH + timedelta(milliseconds=millis)
    except OverflowError as e:
        raise DateParseError(f"타임스탬프 범위 초과: {text!r}") from e
