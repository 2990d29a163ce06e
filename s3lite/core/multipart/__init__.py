"""Multipart upload coordination."""
