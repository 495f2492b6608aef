"""Capture, playback, submission and provider services."""
