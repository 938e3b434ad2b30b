"""Demonstration programs printing observable scheduling order."""
