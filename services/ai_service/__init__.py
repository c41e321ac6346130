"""
AI service - token estimation and summarization collaborators.
"""

from .token_estimator import TokenEstimator, TiktokenEstimator
from .summarizer import Summarizer, ChatModelSummarizer, response_text

__all__ = [
    'TokenEstimator',
    'TiktokenEstimator',
    'Summarizer',
    'ChatModelSummarizer',
    'response_text'
]
