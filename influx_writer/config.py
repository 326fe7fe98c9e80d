from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from urllib.parse import urlsplit

from influx_writer.protocol.timestamps import PRECISION_FACTORS


class ClientConfig(BaseModel):
    """Connection settings shared read-only by every write on a client"""

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Base URL of the InfluxDB HTTP API")
    database: str = Field(..., min_length=1, description="Target database name")
    precision: Optional[str] = Field(default=None, description="Timestamp precision sent with writes")
    timeout: Optional[float] = Field(default=None, gt=0, description="Total request timeout in seconds")

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        """Only absolute http(s) URLs with a host are accepted"""
        try:
            parts = urlsplit(v)
            host = parts.hostname
            parts.port  # raises ValueError for a non-numeric port
        except ValueError as e:
            raise ValueError(f'Unable to parse URL: {e}')
        if parts.scheme not in ('http', 'https'):
            raise ValueError(f'URL must use http or https, got: {v!r}')
        if not host:
            raise ValueError(f'URL has no host: {v!r}')
        return v

    @field_validator('database')
    @classmethod
    def validate_database(cls, v):
        if not v.strip():
            raise ValueError('Database name must not be blank')
        return v

    @field_validator('precision')
    @classmethod
    def validate_precision(cls, v):
        if v is not None and v not in PRECISION_FACTORS:
            raise ValueError(f'Precision must be one of {", ".join(PRECISION_FACTORS)}')
        return v

    @classmethod
    def from_env(cls):
        """Load config from environment variables"""
        import os
        timeout = os.getenv("INFLUX_TIMEOUT")
        return cls(
            url=os.getenv("INFLUX_URL", "http://localhost:8086"),
            database=os.getenv("INFLUX_DATABASE", ""),
            precision=os.getenv("INFLUX_PRECISION") or None,
            timeout=float(timeout) if timeout else None
        )
