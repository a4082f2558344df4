"""paper-launcher: integrity-verified launcher for Paper Minecraft servers.

Finds, verifies and downloads the Paper server JAR, keeps the launcher
itself up to date, backs up worlds and runs the server with tuned JVM flags.
"""

__version__ = "0.1.0"
__description__ = "Integrity-verified launcher and updater for Paper Minecraft servers"

__all__ = ["__version__"]
