"""musicbox: turn a parsed musical performance into timed touch gestures."""
