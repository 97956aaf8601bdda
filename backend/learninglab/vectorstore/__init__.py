from learninglab.vectorstore.base import QueryResult, VectorRecord, VectorStoreBase
from learninglab.vectorstore.factory import get_vector_store
from learninglab.vectorstore.memory_store import InMemoryVectorStore

__all__ = ["VectorStoreBase", "VectorRecord", "QueryResult", "InMemoryVectorStore", "get_vector_store"]
