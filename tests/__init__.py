"""
Test suite for the track simulator
"""
