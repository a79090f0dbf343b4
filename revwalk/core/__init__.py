"""Core layer: data model, error taxonomy, and protocols.

Nothing in this package imports from infra/ or orchestration/, so the rest
of the system can depend on structured results without pulling in subprocess
mechanics.
"""
