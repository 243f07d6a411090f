"""Route modules of the HTTP/WebSocket server."""
