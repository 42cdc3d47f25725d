from .issue_tracker import IssueTracker, TrackerStream

__all__ = ["IssueTracker", "TrackerStream"]
