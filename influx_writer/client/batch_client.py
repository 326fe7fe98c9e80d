"""
Batch Client for InfluxDB Writes

Encodes a batch of measurements as line protocol and submits it in a single
HTTP POST to the InfluxDB 1.x write endpoint:

    POST {base_url}/write?db={database}[&precision={precision}]

No retries: a failed write is reported once as WriteError.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union
from urllib.parse import urlencode, urlsplit, urlunsplit

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from influx_writer.config import ClientConfig
from influx_writer.errors import ConfigError, ValidationError, WriteError
from influx_writer.logging_config import log_write
from influx_writer.measurement import Measurement
from influx_writer.protocol.line_protocol_encoder import LineProtocolEncoder
from influx_writer.version import __version__

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a successful write"""
    status: int
    line_count: int
    body: str = ""


def build_write_url(config: ClientConfig) -> str:
    """Join the write path onto the base URL and add the query parameters"""
    parts = urlsplit(config.url)
    path = parts.path.rstrip('/') + '/write'
    params = {'db': config.database}
    if config.precision:
        params['precision'] = config.precision
    return urlunsplit((parts.scheme, parts.netloc, path, urlencode(params), ''))


class BatchClient:
    """Asynchronous write client for one InfluxDB database"""

    def __init__(
        self,
        url: str,
        database: str,
        precision: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
        encoder: Optional[LineProtocolEncoder] = None
    ):
        """
        Initialize the client. No network I/O happens here.

        Args:
            url: Base URL of the InfluxDB HTTP API (e.g. http://localhost:8086)
            database: Name of the database to write into
            precision: Timestamp precision sent with writes (server default: ns)
            timeout: Total request timeout in seconds for sessions this client
                opens (transport default if None)
            session: Shared aiohttp session; never closed by this client
            encoder: Line protocol encoder (default: full escaping)

        Raises:
            ConfigError: URL cannot be parsed or database name is empty
        """
        try:
            config = ClientConfig(url=url, database=database, precision=precision, timeout=timeout)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid client configuration: {e}") from e

        self._config = config
        self._write_url = build_write_url(config)
        self._session = session
        self._owns_session = False
        self._encoder = encoder or LineProtocolEncoder()

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs) -> "BatchClient":
        return cls(
            config.url,
            config.database,
            precision=config.precision,
            timeout=config.timeout,
            **kwargs
        )

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def write_url(self) -> str:
        return self._write_url

    async def __aenter__(self) -> "BatchClient":
        if self._session is None:
            self._session = self._new_session()
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        """Close the session opened by `async with`, if any"""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    def _new_session(self) -> aiohttp.ClientSession:
        if self._config.timeout is None:
            return aiohttp.ClientSession()
        return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._config.timeout))

    def encode(self, records: Union[Measurement, Iterable[Measurement]]) -> List[str]:
        """
        Encode a batch into request body lines without sending anything

        Raises:
            ValidationError: Empty batch, non-measurement item, invalid record or
                a mapped record whose timestamp precision differs from the client's
        """
        if isinstance(records, Measurement):
            records = [records]

        batch = list(records)
        if not batch:
            raise ValidationError("Batch contains no records")

        precision = self._config.precision or 'ns'
        for index, record in enumerate(batch):
            if not isinstance(record, Measurement):
                raise ValidationError(
                    f"Batch item {index} ({type(record).__name__}) does not implement Measurement"
                )
            mapping = getattr(type(record), '__influx_mapping__', None)
            if mapping is not None and mapping.precision != precision and record.timestamp() is not None:
                raise ValidationError(
                    f"Batch item {index} ({type(record).__name__}) has '{mapping.precision}' timestamps "
                    f"but the client writes with precision '{precision}'"
                )

        return [self._encoder.encode(record) for record in batch]

    async def add_data(self, records: Union[Measurement, Iterable[Measurement]]) -> WriteResult:
        """
        Write a batch of measurements in one request

        Every record is encoded before anything is sent, so an invalid record
        fails the call without network activity.

        Args:
            records: A Measurement or an ordered iterable of them

        Returns:
            WriteResult for a 2xx response

        Raises:
            ValidationError: Batch cannot be encoded
            WriteError: Transport failure or non-2xx response
        """
        lines = self.encode(records)
        payload = '\n'.join(lines)
        line_count = len(lines)

        if self._session is not None:
            return await self._post(self._session, payload, line_count)

        async with self._new_session() as session:
            return await self._post(session, payload, line_count)

    async def _post(self, session: aiohttp.ClientSession, payload: str, line_count: int) -> WriteResult:
        logger.debug(f"Writing {line_count} lines to {self._write_url}")
        start = time.perf_counter()

        try:
            async with session.post(
                self._write_url,
                data=payload.encode('utf-8'),
                headers={
                    "Content-Type": "text/plain; charset=utf-8",
                    "User-Agent": f"influx-writer/{__version__}"
                }
            ) as response:
                body = await response.text(errors='replace')
                duration_ms = (time.perf_counter() - start) * 1000

                if 200 <= response.status < 300:
                    log_write(logger, self._config.database, line_count, response.status, duration_ms, True)
                    return WriteResult(status=response.status, line_count=line_count, body=body)

                log_write(logger, self._config.database, line_count, response.status, duration_ms, False)
                logger.warning(f"Write rejected: HTTP {response.status} - {body[:200]}")
                raise WriteError(
                    "The InfluxDB server responded with an error",
                    status=response.status,
                    body=body
                )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Network error writing to {self._write_url}: {e}")
            raise WriteError("Unable to perform HTTP request", cause=e) from e
