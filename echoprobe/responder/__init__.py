"""Reference echo responder."""
