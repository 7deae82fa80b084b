"""
Core modules for Y!mobile Usage.

This package contains the acquisition pipeline: login, authenticated page
retrieval, usage page parsing, usage calculation and caching.
"""
