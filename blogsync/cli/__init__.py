"""blogsync CLI — Typer-based command-line interface.

Provides the ``blogsync`` command with subcommands for listing blogs,
browsing the remote tree, publishing posts and checking connections.

All output uses Rich for formatted terminal display.
"""
