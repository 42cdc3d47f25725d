from .base import StreamCollector
from .feed_scanner import FeedScanner
from .change_history import ChangeHistoryParser
from .event_source import IssueEventSource

__all__ = ["StreamCollector", "FeedScanner", "ChangeHistoryParser", "IssueEventSource"]
