"""
Slidecast Test Suite

This package contains all tests for the Slidecast project:
- unit/: Unit tests for individual components (ffmpeg is always mocked)
"""
