"""Feed fusion and slate orchestration."""
