"""LiveSync — realtime state synchronization for the MagenAd dashboard.

Consumes row-level change events (INSERT/UPDATE/DELETE) pushed by the
backend and merges them into bounded, in-memory view state: dashboard
counters, recent anomalies, the notification feed and the activity feed.
"""

__version__ = "0.1.0"
