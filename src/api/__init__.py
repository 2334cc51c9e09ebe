"""
Authoring Console API Module

FastAPI backend providing REST endpoints for:
- Authoring sessions (phase transitions, outline and draft editing, saving)
- Saved item ordering
"""
