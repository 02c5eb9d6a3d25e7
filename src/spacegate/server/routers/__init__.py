"""Route modules mounted by spacegate.server.app."""
