"""Summarize a Mattermost bulk-import file with DuckDB

Reads the JSONL file produced by ``MattermostExporter`` without loading it
into Python objects, so large imports can be checked after a run.
"""

from pathlib import Path
from typing import Any, Dict, List

import duckdb


class ImportFileStats:
    """Line and thread counts of a bulk-import file

    Example:
        >>> stats = ImportFileStats("bulk-export.jsonl")
        >>> stats.line_counts()
        {'channel': 3, 'post': 120, 'user': 12, 'version': 1}
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def _source(self) -> str:
        escaped = str(self.path).replace("'", "''")
        return f"read_ndjson_objects('{escaped}')"

    def line_counts(self) -> Dict[str, int]:
        """Number of lines per import line type"""
        query = f"""
            SELECT json_extract_string(json, '$.type') AS line_type, count(*) AS lines
            FROM {self._source()}
            GROUP BY line_type
            ORDER BY line_type
        """
        conn = duckdb.connect()
        try:
            rows = conn.execute(query).fetchall()
        finally:
            conn.close()
        return {line_type: int(lines) for line_type, lines in rows}

    def thread_counts(self) -> List[Dict[str, Any]]:
        """Root posts and replies per channel (direct posts grouped together)"""
        query = f"""
            SELECT
                coalesce(json_extract_string(json, '$.post.channel'), '(direct)') AS channel,
                count(*) AS threads,
                sum(json_array_length(coalesce(
                    json_extract(json, '$.post.replies'),
                    json_extract(json, '$.direct_post.replies')
                ))) AS replies
            FROM {self._source()}
            WHERE json_extract_string(json, '$.type') IN ('post', 'direct_post')
            GROUP BY channel
            ORDER BY channel
        """
        conn = duckdb.connect()
        try:
            rows = conn.execute(query).fetchall()
        finally:
            conn.close()
        return [
            {"channel": channel, "threads": int(threads), "replies": int(replies or 0)}
            for channel, threads, replies in rows
        ]

    def summary(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "lines": self.line_counts(),
            "channels": self.thread_counts(),
        }
