"""
BranchScope — line and branch coverage over augmented syntax trees.
"""

__version__ = "0.1.0"
