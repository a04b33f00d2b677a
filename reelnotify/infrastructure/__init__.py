"""Infrastructure layer: persistence, security and realtime delivery."""
