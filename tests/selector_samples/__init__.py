"""
Sample package of types for selector tests.
"""
