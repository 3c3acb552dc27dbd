"""Shared HTTP plumbing: pooled client, header names and the error envelope."""
