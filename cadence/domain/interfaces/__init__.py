"""Domain interfaces"""
