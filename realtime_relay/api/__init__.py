"""Relay diagnostics and WebSocket routes."""
