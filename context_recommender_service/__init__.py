"""Context-partitioned recommender model manager"""
