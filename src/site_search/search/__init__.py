"""
Search indexing and query engine package.

- text: tokenizers, filters and punctuation normalization
- fuzzy: edit distance for suggestion matching
- scoring: static relevance heuristic and text-match score
- query_builder: parameterized predicate accumulation
- sqlite_storage: index, suggestion snapshot and analytics tables
- indexer: index lifecycle and ranked search
- query_processor: stop/boost word processing and weighted search
- suggestions: suggestion snapshot build and autocomplete matching
"""
