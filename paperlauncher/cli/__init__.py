"""paper-launcher CLI — Typer-based command-line interface.

Provides the ``paperlauncher`` command with subcommands for running the
server, checking and applying updates, verifying and downloading JARs.

All output uses Rich for formatted terminal display.
"""
