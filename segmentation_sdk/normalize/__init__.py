"""Normalization of raw API payloads into canonical results."""
