"""
Dependency Injection container for the argo_harvester component.

This container uses the `dependency-injector` library to wire together all
the components of the application, such as services and infrastructure adapters,
based on the application's configuration.
"""

from dependency_injector import containers, providers
import httpx

from ..application.domain import *
from ..application.scanner import IndexScanner
from ..application.service import ArchiveFetcher, HarvesterService, ProfileAggregator
from ..settings import settings

from .archive_client import HttpArchiveSource
from .decoder import NetcdfArchiveDecoder
from .index_client import HttpIndexSource
from .writers import MatProfileWriter, ParquetProfileWriter


class Container(containers.DeclarativeContainer):
    """DI container for wiring the application components."""

    cli_args = providers.Configuration()

    config = providers.Object(settings)

    http_client = providers.Singleton(httpx.AsyncClient, follow_redirects=True)

    index_source: providers.Factory[IndexSource] = providers.Factory(
        HttpIndexSource,
        client=http_client,
        root_url=config().harvester.index_root,
        timeout=config().harvester.timeout,
    )

    archive_source: providers.Factory[ArchiveSource] = providers.Factory(
        HttpArchiveSource,
        client=http_client,
        root_url=config().harvester.archive_root,
        timeout=config().harvester.timeout,
        chunk_size=config().harvester.chunk_size,
    )

    decoder: providers.Factory[ArchiveDecoder] = providers.Factory(
        NetcdfArchiveDecoder,
        variables=dict(config().harvester.decoder),
        epoch=config().harvester.decoder.epoch,
    )

    writer = providers.Selector(
        cli_args.output_format,
        parquet=providers.Factory(ParquetProfileWriter),
        mat=providers.Factory(MatProfileWriter),
    )

    scanner = providers.Factory(
        IndexScanner,
        index_source=index_source,
        archive_root=config().harvester.archive_root,
    )

    fetcher = providers.Factory(
        ArchiveFetcher,
        archive_source=archive_source,
        decoder=decoder,
    )

    harvester_service = providers.Factory(
        HarvesterService,
        scanner=scanner,
        fetcher=fetcher,
        aggregator=providers.Factory(ProfileAggregator),
        writer=writer,
        concurrent_downloads=config().harvester.concurrent_downloads,
    )
