"""
Core framework: configuration, logging, HTTP client lifecycle and the
staff sheet layer.
"""
