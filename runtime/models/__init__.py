"""
Pydantic models used by the plakait runtime.

Split into:
- session_models: Turn (UserTurn / BotTurn) + MessageHistory + Session
- api_models: HTTP request/response schemas and the model's reply shape
"""
