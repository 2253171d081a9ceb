"""Result retrieval, decoding and normalization services."""
