"""
XML 이벤트 스트림 커서
iterparse 이벤트 위에서 "다음 시작 태그", "자식 태그", "텍스트 읽기", "끝 태그까지 건너뛰기"를
이름 있는 연산으로 제공
"""

import xml.etree.ElementTree as ET
from typing import BinaryIO, List, Optional, Tuple, Union

from errors import MalformedDocumentError, XmlSyntaxError

Expected = Union[str, Tuple[str, ...], None]


def local_name(tag) -> str:
    """'{namespace}name' 형식에서 name만 반환"""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def attribute(element: ET.Element, name: str) -> Optional[str]:
    """네임스페이스와 무관하게 속성값 조회"""
    for key, value in element.attrib.items():
        if local_name(key) == name:
            return value
    return None


class XmlCursor:
    """한 스트림을 앞으로만 읽는 커서"""

    def __init__(self, stream: BinaryIO):
        self._events = ET.iterparse(stream, events=("start", "end"))
        self._open: List[ET.Element] = []   # 현재 열린 요소 스택
        self.finished = False

    @property
    def depth(self) -> int:
        return len(self._open)

    def _next_event(self) -> Optional[Tuple[str, ET.Element]]:
        if self.finished:
            return None
        try:
            event, element = next(self._events)
        except StopIteration:
            self.finished = True
            return None
        except ET.ParseError as e:
            self.finished = True
            raise XmlSyntaxError(f"XML 파싱 실패: {e}") from e

        if event == "start":
            self._open.append(element)
        else:
            self._open.pop()
        return event, element

    def _depth_of(self, element: ET.Element) -> Optional[int]:
        for index in range(len(self._open) - 1, -1, -1):
            if self._open[index] is element:
                return index + 1
        return None

    def is_open(self, element: ET.Element) -> bool:
        return self._depth_of(element) is not None

    def next_start(self, name: Optional[str] = None) -> Optional[ET.Element]:
        """다음 시작 태그 (name 지정 시 해당 이름만), 문서 끝이면 None"""
        while True:
            item = self._next_event()
            if item is None:
                return None
            event, element = item
            if event == "start" and (name is None or local_name(element.tag) == name):
                return element

    def next_child(self, parent: ET.Element, expected: Expected = None) -> Optional[ET.Element]:
        """
        parent의 다음 직계 자식 시작 태그 반환

        parent의 끝 태그에 도달하면 None.
        expected가 주어지면 자식이 없거나 이름이 다를 때 MalformedDocumentError.
        """
        child = None
        depth = self._depth_of(parent)
        while depth is not None:
            item = self._next_event()
            if item is None:
                break
            event, element = item
            if event == "end" and element is parent:
                break
            if event == "start" and self.depth == depth + 1:
                child = element
                break

        if expected is not None:
            names = (expected,) if isinstance(expected, str) else expected
            wanted = " 또는 ".join(f"<{n}>" for n in names)
            if child is None:
                raise MalformedDocumentError(
                    f"<{local_name(parent.tag)}> 안에 {wanted} 없음"
                )
            if local_name(child.tag) not in names:
                raise MalformedDocumentError(
                    f"<{local_name(parent.tag)}> 안에서 {wanted} 대신 <{local_name(child.tag)}> 발견"
                )
        return child

    def skip(self, element: ET.Element) -> None:
        """element의 끝 태그까지 소비"""
        while self.is_open(element):
            if self._next_event() is None:
                break

    def read_text(self, element: ET.Element) -> str:
        """element의 끝 태그까지 소비하고 전체 텍스트 반환"""
        self.skip(element)
        return "".join(element.itertext())

    def release(self, element: ET.Element) -> None:
        """처리 끝난 요소 메모리 해제"""
        element.clear()
