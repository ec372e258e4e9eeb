"""In-process speech recognition (optional ``voice`` extra)."""
