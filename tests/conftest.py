import io
import sys
from pathlib import Path

# Ensure repository root is on sys.path so tests can import the modules
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from errors import TransportError  # noqa: E402


class CountingStream(io.BytesIO):
    """BytesIO that counts close() calls."""

    def __init__(self, data: bytes):
        super().__init__(data)
        self.close_count = 0

    def close(self):
        self.close_count += 1
        super().close()


class FailingStream(CountingStream):
    """Serves the first `fail_after` bytes, then raises OSError."""

    def __init__(self, data: bytes, fail_after: int):
        super().__init__(data)
        self.fail_after = fail_after

    def read(self, size=-1):
        position = self.tell()
        if position >= self.fail_after:
            raise OSError("connection reset by peer")
        remaining = self.fail_after - position
        if size is None or size < 0 or size > remaining:
            size = remaining
        return super().read(size)


class FakeTracker:
    """Serves canned feed and change-history documents."""

    def __init__(self, feed: bytes, histories: dict):
        self.feed = feed
        self.histories = histories
        self.opened = []

    def open_feed_stream(self):
        stream = CountingStream(self.feed)
        self.opened.append(stream)
        return stream

    def open_changes_stream(self, issue):
        if issue.key not in self.histories:
            raise TransportError(f"HTTP 404: {issue.key}", source=issue.key)
        stream = CountingStream(self.histories[issue.key])
        self.opened.append(stream)
        return stream


def rss_item(title, link=None, description="Issue description", pub_date="Mon, 01 Jan 2024 10:00:00 UTC", extra=""):
    link = link or f"https://tracker.example.com/issue/{title.split(':')[0]}"
    return (
        "<item>"
        f"<title>{title}</title>"
        f"<link>{link}</link>"
        f"<description>{description}</description>"
        f"<pubDate>{pub_date}</pubDate>"
        f"{extra}"
        "</item>"
    )


def rss_feed(*items):
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel>'
        "<title>Tracker</title>"
        "<link>https://tracker.example.com</link>"
        "<description>Issue activity</description>"
        + "".join(items)
        + "</channel></rss>"
    ).encode("utf-8")


def single_field(name, value):
    return f'<field xsi:type="SingleField" name="{name}"><value>{value}</value></field>'


def change_field(name, new, old=None):
    values = f"<oldValue>{old}</oldValue><newValue>{new}</newValue>" if old is not None else f"<newValue>{new}</newValue>"
    return f'<field xsi:type="ChangeField" name="{name}">{values}</field>'


def change_group(*fields):
    return "<change>" + "".join(fields) + "</change>"


def changes_doc(*groups):
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<changes xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">'
        '<issue id="PROJ-1">'
        '<field name="summary"><value>Fix thing</value></field>'
        '<field name="updated"><value>1600000000000</value></field>'
        "</issue>"
        + "".join(groups)
        + "</changes>"
    ).encode("utf-8")
