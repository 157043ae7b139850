"""Adapters layer for Patient-Contracts.

Adapters implement the Port interfaces defined in the domain layer: file
sources that yield raw payloads, and stores that persist normalized records.
"""
