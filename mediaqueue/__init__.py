"""
Media Server Job Queue

A durable, database-backed job queue and worker pool for a self-hosted media
server: deduplicated enqueue, atomic reservation, dead-lettering, live worker
pool resizing, and a fluent cron expression builder.
"""

__version__ = "1.0.0"
