"""
Agents used by the plakait runtime.

ConversationAgent:

- receives a Session + new user message
- updates history
- asks the persona for its reply and records it
"""
