"""Personal-best record tracking for typing tests."""
