"""Infrastructure modules for the notification dispatch engine.

Centralized infrastructure components:
- configuration: Settings management (Settings, section settings classes)
- logging: Structured logging setup and dispatch context binding
- events: In-process event bus
- locking: Locks for scheduled passes
- operations: Operation results and error classification
- resilience: Circuit breakers and the retry pickup worker
- services: Application-scoped providers (get_settings, get_event_bus)
"""
