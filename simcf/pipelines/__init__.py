"""Batch entry points: config-driven training and model export."""
