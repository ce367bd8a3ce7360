"""
HOG + Naive Bayes Handwritten Character Recognizer

A classical recognition pipeline for handwritten digits and letters:
HOG descriptors, a discretized Naive Bayes classifier, feature selection
and a cascade of specialized pairwise classifiers.
"""

__version__ = "1.0.0"
__author__ = "HNRS Team"
