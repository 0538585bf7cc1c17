"""
Security Monitor — audit-log alert rule engine.

Architecture:
    secmonitor/
    ├── api/             # FastAPI routers (HTTP layer)
    ├── db/              # SQLAlchemy models and engine
    ├── middleware/      # Error handling, request context
    └── monitor/         # Rule catalog, evaluator, dispatcher, channels, status

Data Flow (one tick):
    Rule Catalog → Audit Store query → Rule Evaluator → Alert Dispatcher
    → Channels (Slack, PagerDuty, Email, Webhook) → SECURITY_ALERT feedback event

Version: 1.0.0
"""

__version__ = "1.0.0"
