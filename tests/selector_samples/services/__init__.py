"""
Sample services subpackage for namespace selector tests.
"""
