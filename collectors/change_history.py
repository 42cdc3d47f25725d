"""
이슈 변경 이력 파서
change 그룹 안의 field 요소들로부터 필드 단위 변경 (이전 값 → 새 값, 변경자, 변경 시간) 재구성

field 인코딩 두 종류:
  <field xsi:type="ChangeField" name="State"><oldValue>Open</oldValue><newValue>Fixed</newValue></field>
  <field xsi:type="SingleField" name="updaterName"><value>alice</value></field>
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, List, Optional, Tuple

from errors import MalformedDocumentError, MalformedFieldError, XmlSyntaxError
from models import ChangeRecord, ChangeResult, Failure, FieldKind
from .base import StreamCollector
from .dates import parse_epoch_millis
from .xml_cursor import XmlCursor, attribute, local_name

logger = logging.getLogger(__name__)

CHANGE_TAG = "change"
FIELD_TAG = "field"
OLD_VALUE_TAG = "oldValue"

# 메타데이터 필드 이름
UPDATER_FIELD = "updaterName"
UPDATED_FIELD = "updated"


@dataclass
class ChangeGroup:
    """change 그룹 하나의 누적 상태"""
    updater: Optional[str] = None
    updated_at: Optional[datetime] = None
    diffs: List[Tuple[str, Optional[str], Optional[str]]] = field(default_factory=list)

    def build(self) -> List[ChangeRecord]:
        """
        그룹 종료 시 diff 필드마다 ChangeRecord 생성

        그룹당 레코드 하나가 아니라 diff 필드 하나당 레코드 하나다.
        여러 필드가 함께 바뀐 그룹은 같은 updater/updated_at을 공유하는
        레코드 여러 개가 되고, 메타데이터 필드만 있는 그룹은 레코드를 만들지 않는다.
        """
        if self.updated_at is None:
            raise MalformedFieldError(f"change 그룹에 {UPDATED_FIELD} 타임스탬프 없음")

        return [
            ChangeRecord(
                field_name=name,
                prior_value=prior,
                current_value=current,
                updated_by=self.updater,
                updated_at=self.updated_at,
            )
            for name, prior, current in self.diffs
        ]


class ChangeHistoryParser(StreamCollector):
    """이슈 변경 이력 파서"""

    @property
    def source_name(self) -> str:
        return "changes"

    def extract_changes(
        self,
        stream: BinaryIO,
        since: Optional[datetime] = None,
        label: str = None,
    ) -> ChangeResult:
        """
        변경 이력 스트림에서 ChangeRecord 추출

        Args:
            stream: 변경 이력 바이트 스트림 (반환 전에 닫힘)
            since: 이 시각 이후 (초과)의 변경만 반환, None이면 전체

        Returns:
            ChangeResult (changes는 등장 순서)
        """
        return self.collect(stream, label=label, since=since)

    def _new_result(self) -> ChangeResult:
        return ChangeResult()

    def _collect(self, cursor: XmlCursor, result: ChangeResult, since: Optional[datetime] = None) -> None:
        position = 0
        while True:
            group = cursor.next_start(CHANGE_TAG)
            if group is None:
                break
            position += 1

            try:
                records = self.extract_group(cursor, group)
            except XmlSyntaxError:
                raise
            except (MalformedDocumentError, MalformedFieldError) as e:
                cursor.skip(group)
                self._report(result, Failure(position=position, error=e, context=_group_fields(group)))
                continue
            finally:
                if not cursor.is_open(group):
                    cursor.release(group)

            for record in records:
                if since is None or record.updated_at > since:
                    logger.debug(f"change: {record}")
                    result.changes.append(record)

    def extract_group(self, cursor: XmlCursor, group: ET.Element) -> List[ChangeRecord]:
        """change 요소 하나를 끝 태그까지 읽어 ChangeRecord 리스트로 변환"""
        accumulator = ChangeGroup()
        while True:
            child = cursor.next_child(group)
            if child is None:
                break
            if local_name(child.tag) == FIELD_TAG:
                self._read_field(cursor, child, accumulator)
            else:
                cursor.skip(child)
        return accumulator.build()

    def _read_field(self, cursor: XmlCursor, element: ET.Element, accumulator: ChangeGroup) -> None:
        name = attribute(element, "name")
        if not name:
            raise MalformedDocumentError("field 요소에 name 속성 없음")

        kind = FieldKind.from_marker(attribute(element, "type"))
        if kind is FieldKind.CHANGE:
            first = cursor.next_child(element)
            if first is None:
                raise MalformedDocumentError(f"변경 필드 {name}에 값 요소 없음")

            if local_name(first.tag) == OLD_VALUE_TAG:
                prior = cursor.read_text(first)
                second = cursor.next_child(element)
                if second is None:
                    raise MalformedDocumentError(f"변경 필드 {name}에 새 값 요소 없음")
                current = cursor.read_text(second)
            else:
                # 최초 입력 - 이전 값 없음
                prior = None
                current = cursor.read_text(first)
            accumulator.diffs.append((name, prior, current))
        else:
            value_tag = cursor.next_child(element)
            value = cursor.read_text(value_tag) if value_tag is not None else None
            if name == UPDATER_FIELD:
                accumulator.updater = value.strip() if value is not None else None
            elif name == UPDATED_FIELD:
                accumulator.updated_at = parse_epoch_millis(value)

        cursor.skip(element)


def _group_fields(group: ET.Element) -> str:
    """실패 보고용 필드 이름 목록"""
    names = [attribute(child, "name") or "?" for child in group if local_name(child.tag) == FIELD_TAG]
    return "fields=" + ",".join(names) if names else ""
