"""
Runtime package for the plakait game server.

This package contains:
- API layer (FastAPI server + routes)
- Agents (conversation / turn logic)
- Stores (in-memory sessions)
- Models (Pydantic models for turns, sessions, requests and replies)
"""
