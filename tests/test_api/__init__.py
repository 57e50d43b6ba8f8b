"""
API Tests
"""
