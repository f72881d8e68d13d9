"""
SLA Module
==========

Bounded context for SLA deadline monitoring.

Responsibilities:
- Compute each subtask's deadline from its start anchor and SLA budget
- Detect the Warning and Overdue phases on a recurring tick
- Emit one deduplicated notification event per phase
- Move overdue subtasks to the ``overdue`` status
- Hand new alerts to the outbound webhook
"""
