"""Progress API - membership admission service."""
