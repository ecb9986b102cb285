"""
recovery_ingestion -- Streaming ingestion of delimited unit exports.

Tokenizes exports line by line, schedules rows in bounded batches, maps
headers to typed unit rows and hands each batch to the canonical
reconciler.  Never loads a whole file into memory.

Architecture:
    recovery_ingestion/ is a top-level package.  Nothing in kernel/ or
    engines/ imports from ingestion.
"""
