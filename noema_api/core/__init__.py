"""
Core utilities shared by the API server, chain readers and preview services.
"""
