"""Core domain logic for health survey classification and reporting.

This package contains the business logic and domain models,
isolated from storage backends and rendering for easy testing and reasoning.
"""
