"""External collaborators: Elasticsearch clusters, the weather API and the local archive."""
