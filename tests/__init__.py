"""
Test Suite for phaseflow

This package contains the tests for the lifecycle engine:
- machine/builder - transition table, guards, actions, guidance
- workflow - the standard project lifecycle end to end
- persistence/filesystem - YAML state file handling
- api - HTTP routes
"""
