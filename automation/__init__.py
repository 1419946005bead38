"""Outbound delivery of generated reports."""
