"""
Reporting package.

- aggregator: pure helpers for windows, buckets, trends and status labels
- repository: read-only queries over students, content and attempts
- service: administrator reports
- controller: HTTP endpoints under ``/reports``
"""
