"""
Unit Tests

Tests for individual components and functions:
- core/: file resolution, duration allocation, data model
- core/video/: text overlays, filter graph, Ken Burns motion, encoder
- media/: ffprobe helpers and resolution handling
- services/: end-to-end video generation with a mocked encoder
"""
