"""
schemas/ — Pydantic request/response models for the pricing API

Provides input validation, auto-generated OpenAPI docs, and explicit
row → response mapping at the persistence boundary.
"""
