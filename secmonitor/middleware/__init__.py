"""HTTP middleware: error handling and request context."""
