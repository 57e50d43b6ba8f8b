"""
Action Tests
"""
