"""
Operator command line tool for Logto personal access tokens.
"""
