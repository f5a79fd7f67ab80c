"""Shared types and configuration."""
