"""Application layer: configuration, controller and HTTP API."""
