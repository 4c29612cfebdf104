"""Command-line interface for the SK Budget Tracker"""
