"""Table and operation constants.

Learn: Centralizing the names as constants prevents typos and makes it
easy to discover every table the dashboard listens to.
"""

# ─── Row operations ──────────────────────────────────────

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

OPERATIONS = (INSERT, UPDATE, DELETE)

# ─── Tables ──────────────────────────────────────────────

ANOMALIES = "anomalies"
BASELINE_STATS = "baseline_stats"
NOTIFICATIONS = "notifications"
ACTIVITY_FEED = "activity_feed"

# ─── Predicate columns ───────────────────────────────────

USER_COLUMN = "user_id"
ROW_COLUMN = "id"
