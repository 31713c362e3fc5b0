"""Real-time token usage analytics over a shared Redis store.

Components:
    - capture: per-request metrics ingestion and session/user/model fan-out
    - analytics: Prometheus gauge refresh and composite snapshots
    - timeseries: RedisTimeSeries catalog, queries and periodic rollups
    - routing: rule-table task classification
"""

__version__ = "0.1.0"
