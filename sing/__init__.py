"""Building blocks for networking tools: ranges, collections, streams, tasks, dialers and SNTP."""

__version__ = "0.1.0"