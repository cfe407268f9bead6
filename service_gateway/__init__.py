"""
Logto Access Gateway service.
"""
