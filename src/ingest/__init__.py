"""Time-series import pipeline.

This module decodes source files into points, streams them in bounded
chunks and schedules one import task per file on a worker pool.
"""
