"""External collaborators: content generator, item source and the local supply pool."""
