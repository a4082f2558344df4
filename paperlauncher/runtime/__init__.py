"""Launch collaborators around the core pipeline.

Java detection, heap sizing, JVM flags, world backups, EULA acceptance and
supervision of the server process.
"""
