"""
Command line interface and run orchestration.
"""
