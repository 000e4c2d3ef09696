"""
Story Aggregation API Module

FastAPI backend providing REST endpoints for:
- Story lifecycle (find-or-create, create, update, open/close, remove)
- Merging stories and their comment counts
- Live update eligibility
"""
