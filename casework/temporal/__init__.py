"""Temporal workflows and activities for durable document processing."""
