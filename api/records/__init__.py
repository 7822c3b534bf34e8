"""
Single-table record submission: schema, validation, INSERT construction and
the HTTP endpoints that tie them together.
"""
