"""
Stance module for voice/topic stance tracking and mindshare analytics.

This module stores stance and mindshare time series per voice, detects
stance flips, and derives topic distributions and comparison annotations.
"""

__version__ = "1.0.0"
