"""
Shared Kernel Module
====================

Shared infrastructure used across both bounded contexts (SLA monitoring
and notifications).

DO NOT add business logic from SLA or Notifications to shared kernel.
"""
