"""Planning and execution building blocks: security gate, templates,
conditions, redaction, events, auth sessions, dispatch and the engine."""
