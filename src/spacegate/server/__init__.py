"""HTTP server for spacegate: chat gateway and space administration routes."""
