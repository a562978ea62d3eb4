"""
API package: FastAPI application for routing, handoffs, and feedback.
The application object lives in ``agent_routing.api.main``.
"""
