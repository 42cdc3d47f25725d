from datetime import datetime, timezone

import pytest

from collectors.feed_scanner import FeedScanner
from conftest import CountingStream, FailingStream, rss_feed, rss_item
from errors import MalformedDocumentError, MalformedFieldError, TransportError, XmlSyntaxError
from models import FeedEntry, Issue


def four_entry_feed():
    """E1 (newest) .. E4 (oldest), in feed order."""
    return rss_feed(
        rss_item("PROJ-1: first", pub_date="Thu, 04 Jan 2024 10:00:00 UTC"),
        rss_item("PROJ-2: second", pub_date="Wed, 03 Jan 2024 10:00:00 UTC"),
        rss_item("PROJ-3: third", pub_date="Tue, 02 Jan 2024 10:00:00 UTC"),
        rss_item("PROJ-4: fourth", pub_date="Mon, 01 Jan 2024 10:00:00 UTC"),
    )


def keys(result):
    return [entry.issue.key for entry in result.entries]


def test_full_scan_returns_oldest_first():
    result = FeedScanner().scan(CountingStream(four_entry_feed()))

    assert keys(result) == ["PROJ-4", "PROJ-3", "PROJ-2", "PROJ-1"]
    assert result.ok
    assert not result.stopped_at_last_seen
    assert result.newest.issue == Issue("PROJ", 1)


def test_scan_stops_at_last_seen_and_excludes_it():
    scanner = FeedScanner()
    everything = scanner.scan(CountingStream(four_entry_feed()))
    e3 = everything.entries[1]
    assert e3.issue.key == "PROJ-3"

    result = scanner.scan(CountingStream(four_entry_feed()), last_seen=e3)

    assert keys(result) == ["PROJ-2", "PROJ-1"]
    assert result.stopped_at_last_seen


def test_scan_stops_at_last_seen_even_when_that_item_is_malformed():
    """Test that a broken pubDate on the boundary item does not let the scan run past it."""
    feed = rss_feed(
        rss_item("PROJ-3: third", pub_date="Wed, 03 Jan 2024 10:00:00 UTC"),
        rss_item("PROJ-2: second", pub_date="2024-01-02T10:00:00Z"),
        rss_item("PROJ-1: first", pub_date="Mon, 01 Jan 2024 10:00:00 UTC"),
    )
    last_seen = FeedEntry(
        issue=Issue("PROJ", 2),
        title="PROJ-2: second",
        description="Issue description",
        link="https://tracker.example.com/issue/PROJ-2",
        published_at=datetime(2024, 1, 2, 10, 0, 0, tzinfo=timezone.utc),
    )

    result = FeedScanner().scan(CountingStream(feed), last_seen=last_seen)

    assert keys(result) == ["PROJ-3"]
    assert result.stopped_at_last_seen
    [failure] = result.failures
    assert failure.position == 2
    assert failure.context == "PROJ-2: second"


def test_rescan_with_newest_entry_is_empty():
    scanner = FeedScanner()
    first = scanner.scan(CountingStream(four_entry_feed()))
    second = scanner.scan(CountingStream(four_entry_feed()), last_seen=first.newest)

    assert second.entries == []
    assert second.stopped_at_last_seen


def test_entry_fields_are_extracted():
    feed = rss_feed(
        rss_item(
            "PROJ-42: Fix thing",
            link="https://tracker.example.com/issue/PROJ-42",
            description="\n  Steps to\nreproduce  \n",
            pub_date="Mon, 01 Jan 2024 10:00:00 UTC",
            extra="<guid>PROJ-42</guid><category>bug</category>",
        )
    )
    [entry] = FeedScanner().scan(CountingStream(feed)).entries

    assert entry.issue == Issue(prefix="PROJ", number=42)
    assert entry.title == "PROJ-42: Fix thing"
    assert entry.link == "https://tracker.example.com/issue/PROJ-42"
    assert entry.description == "Steps toreproduce"
    assert entry.published_at == datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def test_malformed_title_skips_entry_and_reports_it():
    feed = rss_feed(
        rss_item("PROJ-3: newest"),
        rss_item("No issue key here"),
        rss_item("PROJ-1: oldest"),
    )
    result = FeedScanner().scan(CountingStream(feed))

    assert keys(result) == ["PROJ-1", "PROJ-3"]
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.position == 2
    assert failure.context == "No issue key here"
    assert isinstance(failure.error, MalformedFieldError)


def test_out_of_order_children_fail_only_that_entry():
    bad_item = (
        "<item><link>https://tracker.example.com/issue/PROJ-2</link>"
        "<title>PROJ-2: swapped</title><description>d</description>"
        "<pubDate>Mon, 01 Jan 2024 10:00:00 UTC</pubDate></item>"
    )
    feed = rss_feed(rss_item("PROJ-3: ok"), bad_item, rss_item("PROJ-1: ok"))
    result = FeedScanner().scan(CountingStream(feed))

    assert keys(result) == ["PROJ-1", "PROJ-3"]
    assert isinstance(result.failures[0].error, MalformedDocumentError)
    assert result.failures[0].context == "PROJ-2: swapped"


def test_missing_pub_date_fails_entry():
    bad_item = "<item><title>PROJ-2: no date</title><link>l</link><description>d</description></item>"
    result = FeedScanner().scan(CountingStream(rss_feed(bad_item, rss_item("PROJ-1: ok"))))

    assert keys(result) == ["PROJ-1"]
    assert isinstance(result.failures[0].error, MalformedDocumentError)


def test_bad_pub_date_fails_entry():
    result = FeedScanner().scan(CountingStream(rss_feed(rss_item("PROJ-2: x", pub_date="yesterday"))))

    assert result.entries == []
    assert isinstance(result.failures[0].error, MalformedFieldError)


def test_stream_closed_once_on_success():
    stream = CountingStream(four_entry_feed())
    FeedScanner().scan(stream)
    assert stream.close_count == 1


def test_stream_closed_once_on_early_stop():
    scanner = FeedScanner()
    first = scanner.scan(CountingStream(four_entry_feed()))
    stream = CountingStream(four_entry_feed())
    scanner.scan(stream, last_seen=first.newest)
    assert stream.close_count == 1


def test_truncated_document_raises_with_partial_result():
    data = rss_feed(rss_item("PROJ-2: newest"), rss_item("PROJ-1: oldest"))
    truncated = data[: data.index(b"<item>", data.index(b"</item>"))] + b"<item><title>PROJ-1"
    stream = CountingStream(truncated)

    with pytest.raises(XmlSyntaxError) as excinfo:
        FeedScanner().scan(stream)

    assert stream.close_count == 1
    assert excinfo.value.source == "feed"
    assert [e.issue.key for e in excinfo.value.partial.entries] == ["PROJ-2"]


def test_read_failure_raises_transport_error_with_partial_result():
    data = rss_feed(rss_item("PROJ-2: newest"), rss_item("PROJ-1: oldest"))
    # 두 번째 item의 제목 도중에 연결이 끊김
    stream = FailingStream(data, fail_after=data.index(b"</item>") + len(b"</item><item><title>PROJ"))

    with pytest.raises(TransportError) as excinfo:
        FeedScanner().scan(stream, label="tracker feed")

    assert stream.close_count == 1
    assert excinfo.value.source == "tracker feed"
    assert [e.issue.key for e in excinfo.value.partial.entries] == ["PROJ-2"]
