"""
Core modules for the rating requester.

This package contains the timing policy and the prompt controller.
"""
