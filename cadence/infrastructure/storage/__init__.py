"""Record store implementations"""
