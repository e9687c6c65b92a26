"""CLI for notegraph."""
