"""Web reader: FastAPI app, event stream and browser audio sink."""
