"""Application layer: configuration, API and controller."""
