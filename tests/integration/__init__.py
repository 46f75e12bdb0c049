# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Integration tests for change-impact analysis.

These tests run the analyzer and the command line against a small PHP
project on disk.
"""
