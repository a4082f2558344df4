"""Artifact acquisition and update pipeline.

Checksum store, archive validator, resilient fetcher, feed clients and the
self-update sequencer, all driven by an explicit ``LaunchContext``.
"""
