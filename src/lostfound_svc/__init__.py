"""
Lost & Found Work Request Service

Routes work requests across a campus / transit / airport lost-and-found network:
- Approval chains resolved per request type, routing and item value
- Status state machine with single-approver-per-step guarantees
- Work queues per role and organization, sorted by priority then recency
- YAML persistence and an HTTP API for panel clients
"""

__version__ = "0.1.0"
