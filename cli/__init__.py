"""Command line client for a running sensor log server."""
