# vfdtpy/__init__.py
"""
vfdtpy: incremental Hoeffding trees (VFDT) in pure Python (scikit-learn style).

Exports:
    - VfdtClassifier
    - TreeNode, NodeStats
    - OutOfRangeFeatureValue, CorruptModelFile
"""
import logging

from .exceptions import CorruptModelFile, OutOfRangeFeatureValue, VfdtError
from .node import TreeNode
from .stats import NodeStats
from .tree import VfdtClassifier

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "VfdtClassifier",
    "TreeNode",
    "NodeStats",
    "VfdtError",
    "OutOfRangeFeatureValue",
    "CorruptModelFile",
]
__version__ = "0.1.0"
