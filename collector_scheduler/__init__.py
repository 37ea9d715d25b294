"""Scheduling and job-lifecycle control plane for source-code collection."""
