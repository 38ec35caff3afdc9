"""
Test doubles for the relay's client and upstream sockets.

See ``websocket_mocks`` for the fake client WebSocket, fake upstream
connection and fake connector shared across the test modules.
"""
