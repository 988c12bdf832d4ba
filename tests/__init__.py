"""
Test Suite Module

This module contains all tests for the stance engine,
including unit tests, integration tests, and test utilities.
"""

__version__ = "1.0.0"
__author__ = "Stance Engine Team"
