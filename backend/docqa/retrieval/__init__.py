"""Retrieval components."""

from .vector_index import InMemoryVectorIndex, IndexStats, QueryMatch, VectorIndex
from .pinecone import PineconeIndex
from .retriever import Retriever
from .answer import AnswerGenerator, ExtractiveAnswerGenerator, GeminiAnswerGenerator

__all__ = [
    "VectorIndex",
    "InMemoryVectorIndex",
    "IndexStats",
    "QueryMatch",
    "PineconeIndex",
    "Retriever",
    "AnswerGenerator",
    "ExtractiveAnswerGenerator",
    "GeminiAnswerGenerator",
]
