"""
memc_load: installed-apps log loader.

Reads gzip'd TSV logs of installed applications and loads one compact
record per device into memcached, partitioned by device identifier type.

Modules:
    discovery  - Input file globbing
    decoder    - Gzip decompression and record streaming
    parser     - Line parsing and payload encoding
    writer     - Partitioned cache writes with retry
    pipeline   - Per-file worker pool orchestration
    lifecycle  - Renaming fully loaded files

Flow:
    *.tsv.gz -> FileDecoder -> queue -> workers (LineParser -> CacheWriter) -> memcached
                                                                    per device type

Dependencies:
    - core.*: Logging, errors and retry
    - aiomcache: Async memcached client
    - msgspec: MessagePack payload encoding
    - pydantic: Parsed event validation
"""

__version__ = "0.1.0"
