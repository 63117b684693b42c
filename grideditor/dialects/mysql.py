"""MySQL dialect."""

import urllib.parse
from typing import ClassVar, Optional

from .base import Dialect


class MysqlDialect(Dialect):
    """Dialect for MySQL (scheme mysql): ``LIMIT n`` / ``LIMIT start, n`` paging."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("mysql",)

    PARAMSTYLE: ClassVar[str] = "format"

    def sql_limit(self, offset: Optional[int], limit: Optional[int]) -> str:
        if limit is None or limit < 0:
            return ""
        offset = max(offset or 0, 0)
        if offset == 0:
            return f" LIMIT {int(limit)}"
        return f" LIMIT {int(offset)}, {int(limit)}"

    def connect(self, url: str):
        import pymysql  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        return pymysql.connect(
            host=parsed.hostname,
            user=parsed.username,
            password=parsed.password,
            database=(parsed.path or "")[1:] or None,
            port=parsed.port or 3306,
        )
