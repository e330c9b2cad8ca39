"""
Search indexing and query engine package.

This package provides a pure-Python search stack:
- schema: Field types and the repository schema
- analyzers: Tokenizer and filters (stop words, compound splitting, stemming)
- models: Posting lists with token positions
- index: Inverted index with per-field sub-indexes
- stats: TF-IDF and score normalization
- query_parser: Query syntax into typed clauses
- query_engine: Clause execution, ranking and suggestions
- serialization: Versioned binary snapshot of the index
"""
