"""
Influx Writer Client Module

Asynchronous batch writes to the InfluxDB HTTP write endpoint.
"""

from influx_writer.client.batch_client import BatchClient, WriteResult, build_write_url

__all__ = ['BatchClient', 'WriteResult', 'build_write_url']
