"""Destination sinks.

This module delivers serialized chunks to the time-series database,
or to a local directory for dry runs.
"""
