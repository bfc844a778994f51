"""Decoding to the canonical pixel buffer and per-codec encoding."""
