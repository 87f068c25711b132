"""
Serving — FastAPI application receiving upload events.

The upload layer posts ``document.uploaded`` events here; ingestion runs
as a background task, and run state can be inspected or resumed over HTTP.
"""
