"""HTTP and JSON-RPC surfaces over the scheduling engine."""
