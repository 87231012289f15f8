"""Web layer: development backend stub for the submission lifecycle API."""
