"""
Dataset representation, loading and splitting.
"""

from decision_forest.data.dataset import Dataset
