"""
API routes module.

FastAPI routers for job polling, cancellation and health checks.
"""
