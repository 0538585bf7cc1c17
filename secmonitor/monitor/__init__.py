"""
Security Alert Rule Engine.

Components:
- schemas: Audit events, alert rules, alert instances, outcome records
- catalog: Built-in rules and rule resolution (override > store > defaults)
- store: Audit, rule and channel-settings persistence adapters
- evaluator: Threshold, immediate-trigger and after-hours matching
- channels: Slack, PagerDuty, e-mail and webhook senders
- dispatcher: Concurrent, isolated fan-out plus the SECURITY_ALERT feedback write
- status: Health summary and threat level
- service: Tick orchestration and the check/status/configure contract
"""
